"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from seatguard.types import InvitationStatus, Role, SubscriptionStatus


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Tenants and principals
# ---------------------------------------------------------------------------


class Company(SQLModel, table=True):
    __tablename__ = "companies"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    purchased_manager_seats: int = Field(default=0, ge=0)
    purchased_tech_seats: int = Field(default=0, ge=0)
    used_licenses: int = Field(default=0)  # display cache, see LicenseLedger
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    subscription_status: str = Field(default=SubscriptionStatus.NONE.value)
    # Seat quantities on the billing subscription, mirrored by the billing webhook
    subscription_manager_seats: int = Field(default=0, ge=0)
    subscription_tech_seats: int = Field(default=0, ge=0)
    payment_restricted: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    email: str = Field(index=True, unique=True)
    first_name: str = ""
    last_name: str = ""
    role: str = Field(default=Role.TECHNICIAN.value)  # technician | manager | admin
    platform_role: str | None = None  # platform_admin | customer_user
    company_id: str | None = Field(default=None, foreign_key="companies.id", index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Invitation(SQLModel, table=True):
    __tablename__ = "invitations"
    # At most one live invitation per email per tenant
    __table_args__ = (
        Index(
            "uq_invitations_pending_email",
            "company_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    email: str = Field(index=True)
    role: str = Field(default=Role.TECHNICIAN.value)
    token: str = Field(unique=True)
    status: str = Field(default=InvitationStatus.PENDING.value)
    expires_at: datetime
    invited_by: str | None = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Tenant-owned resources
# ---------------------------------------------------------------------------


class ClientCompany(SQLModel, table=True):
    """A consultant tenant's own customer; a sub-tenant of ``company_id``."""

    __tablename__ = "client_companies"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    name: str
    created_by_id: str | None = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=_utc_now)


class Equipment(SQLModel, table=True):
    __tablename__ = "equipment"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    name: str
    location: str = ""
    criticality: str = Field(default="medium")  # low | medium | high
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class WorkOrder(SQLModel, table=True):
    __tablename__ = "work_orders"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    equipment_id: str | None = Field(default=None, foreign_key="equipment.id")
    title: str
    status: str = Field(default="open")  # open | in_progress | completed
    assigned_to_id: str | None = Field(default=None, foreign_key="users.id")
    created_by_id: str | None = Field(default=None, foreign_key="users.id")
    approved_by_id: str | None = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class TrainingProgress(SQLModel, table=True):
    __tablename__ = "training_progress"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    module_id: str
    completed: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=_utc_now)


class InterviewSession(SQLModel, table=True):
    __tablename__ = "interview_sessions"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    client_company_id: str | None = Field(default=None, foreign_key="client_companies.id")
    conducted_by_id: str | None = Field(default=None, foreign_key="users.id")
    title: str
    created_at: datetime = Field(default_factory=_utc_now)


class Deliverable(SQLModel, table=True):
    __tablename__ = "deliverables"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    client_company_id: str | None = Field(default=None, foreign_key="client_companies.id")
    step: int = Field(default=1)
    title: str
    is_complete: bool = Field(default=False)
    completed_by_id: str | None = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
