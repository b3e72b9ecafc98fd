"""Enums and type aliases for SeatGuard."""

from enum import StrEnum


class Role(StrEnum):
    TECHNICIAN = "technician"
    MANAGER = "manager"
    ADMIN = "admin"


class PlatformRole(StrEnum):
    PLATFORM_ADMIN = "platform_admin"
    CUSTOMER_USER = "customer_user"


class RoleClass(StrEnum):
    """Seat pools a role draws from."""

    MANAGER = "manager"
    TECH = "tech"


class InvitationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    NONE = "none"


class Action(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceType(StrEnum):
    EQUIPMENT = "equipment"
    WORK_ORDER = "work_order"
    TRAINING_PROGRESS = "training_progress"
    TRAINING_MODULE = "training_module"
    CLIENT_COMPANY = "client_company"
    INTERVIEW_SESSION = "interview_session"
    DELIVERABLE = "deliverable"
    USER = "user"
    INVITATION = "invitation"
    BILLING = "billing"


class DeliveryStatus(StrEnum):
    DELIVERED = "delivered"
    SKIPPED = "skipped"
    FAILED = "failed"


class OnDelete(StrEnum):
    CASCADE = "cascade"
    SET_NULL = "set_null"
    BLOCK = "block"


# Roles whose members occupy a paid seat
CONSUMING_ROLES: tuple[Role, ...] = (Role.TECHNICIAN, Role.MANAGER, Role.ADMIN)

ROLE_CLASS_MEMBERS: dict[RoleClass, tuple[Role, ...]] = {
    RoleClass.MANAGER: (Role.MANAGER, Role.ADMIN),
    RoleClass.TECH: (Role.TECHNICIAN,),
}


def role_class_for(role: str) -> RoleClass:
    """Map a tenant role to the seat pool it consumes."""
    if role in (Role.MANAGER, Role.ADMIN):
        return RoleClass.MANAGER
    return RoleClass.TECH
