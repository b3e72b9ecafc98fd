"""initial tenancy schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel.sql.sqltypes
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1b2c3d4e5f"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_STR = sqlmodel.sql.sqltypes.AutoString


def upgrade() -> None:
    """Create tenants, principals, invitations and tenant-owned resources."""
    op.create_table(
        "companies",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("name", _STR(), nullable=False),
        sa.Column("purchased_manager_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("purchased_tech_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("used_licenses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stripe_customer_id", _STR(), nullable=True),
        sa.Column("stripe_subscription_id", _STR(), nullable=True),
        sa.Column("subscription_status", _STR(), nullable=False, server_default="none"),
        sa.Column("subscription_manager_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("subscription_tech_seats", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_restricted", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("purchased_manager_seats >= 0", name="ck_companies_manager_seats"),
        sa.CheckConstraint("purchased_tech_seats >= 0", name="ck_companies_tech_seats"),
    )

    op.create_table(
        "users",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("email", _STR(), nullable=False),
        sa.Column("first_name", _STR(), nullable=False, server_default=""),
        sa.Column("last_name", _STR(), nullable=False, server_default=""),
        sa.Column("role", _STR(), nullable=False, server_default="technician"),
        sa.Column("platform_role", _STR(), nullable=True),
        sa.Column("company_id", _STR(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_company_id"), "users", ["company_id"])

    op.create_table(
        "invitations",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("company_id", _STR(), nullable=False),
        sa.Column("email", _STR(), nullable=False),
        sa.Column("role", _STR(), nullable=False, server_default="technician"),
        sa.Column("token", _STR(), nullable=False),
        sa.Column("status", _STR(), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("invited_by", _STR(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["invited_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token"),
    )
    op.create_index(op.f("ix_invitations_company_id"), "invitations", ["company_id"])
    op.create_index(op.f("ix_invitations_email"), "invitations", ["email"])
    op.create_index(
        "uq_invitations_pending_email",
        "invitations",
        ["company_id", "email"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "client_companies",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("company_id", _STR(), nullable=False),
        sa.Column("name", _STR(), nullable=False),
        sa.Column("created_by_id", _STR(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_client_companies_company_id"), "client_companies", ["company_id"])

    op.create_table(
        "equipment",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("company_id", _STR(), nullable=False),
        sa.Column("name", _STR(), nullable=False),
        sa.Column("location", _STR(), nullable=False, server_default=""),
        sa.Column("criticality", _STR(), nullable=False, server_default="medium"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_equipment_company_id"), "equipment", ["company_id"])

    op.create_table(
        "work_orders",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("company_id", _STR(), nullable=False),
        sa.Column("equipment_id", _STR(), nullable=True),
        sa.Column("title", _STR(), nullable=False),
        sa.Column("status", _STR(), nullable=False, server_default="open"),
        sa.Column("assigned_to_id", _STR(), nullable=True),
        sa.Column("created_by_id", _STR(), nullable=True),
        sa.Column("approved_by_id", _STR(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["equipment_id"], ["equipment.id"]),
        sa.ForeignKeyConstraint(["assigned_to_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["approved_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_work_orders_company_id"), "work_orders", ["company_id"])

    op.create_table(
        "training_progress",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("company_id", _STR(), nullable=False),
        sa.Column("user_id", _STR(), nullable=False),
        sa.Column("module_id", _STR(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_training_progress_company_id"), "training_progress", ["company_id"])
    op.create_index(op.f("ix_training_progress_user_id"), "training_progress", ["user_id"])

    op.create_table(
        "interview_sessions",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("company_id", _STR(), nullable=False),
        sa.Column("client_company_id", _STR(), nullable=True),
        sa.Column("conducted_by_id", _STR(), nullable=True),
        sa.Column("title", _STR(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["client_company_id"], ["client_companies.id"]),
        sa.ForeignKeyConstraint(["conducted_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_interview_sessions_company_id"), "interview_sessions", ["company_id"])

    op.create_table(
        "deliverables",
        sa.Column("id", _STR(), nullable=False),
        sa.Column("company_id", _STR(), nullable=False),
        sa.Column("client_company_id", _STR(), nullable=True),
        sa.Column("step", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("title", _STR(), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("completed_by_id", _STR(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["client_company_id"], ["client_companies.id"]),
        sa.ForeignKeyConstraint(["completed_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_deliverables_company_id"), "deliverables", ["company_id"])


def downgrade() -> None:
    """Drop all tenancy tables."""
    for table in (
        "deliverables",
        "interview_sessions",
        "training_progress",
        "work_orders",
        "equipment",
        "client_companies",
        "invitations",
        "users",
        "companies",
    ):
        op.drop_table(table)
