"""Role gate: which tenant roles may perform which actions.

The gate composes with the scoping guard and never replaces it. An admin of
tenant A is still denied tenant B's rows by ``authorize``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from seatguard.exceptions import InsufficientRole, NoTenantAssigned
from seatguard.tenancy.scoping import is_platform_admin
from seatguard.types import Action, ResourceType, Role

if TYPE_CHECKING:
    from seatguard.tenancy.context import TenantContext

logger = structlog.get_logger(__name__)

_ALL_ACTIONS = frozenset(Action)
_READ_ONLY = frozenset({Action.READ})
_READ_WRITE = frozenset({Action.READ, Action.CREATE, Action.UPDATE})

_TECHNICIAN: dict[ResourceType, frozenset[Action]] = {
    **{resource: _READ_ONLY for resource in ResourceType},
    ResourceType.WORK_ORDER: _READ_WRITE,
    ResourceType.TRAINING_PROGRESS: _READ_WRITE,
}

_MANAGER: dict[ResourceType, frozenset[Action]] = {
    **{resource: _ALL_ACTIONS for resource in ResourceType},
    ResourceType.BILLING: _READ_ONLY,
}

_ADMIN: dict[ResourceType, frozenset[Action]] = {
    resource: _ALL_ACTIONS for resource in ResourceType
}

PERMISSIONS: dict[Role, dict[ResourceType, frozenset[Action]]] = {
    Role.TECHNICIAN: _TECHNICIAN,
    Role.MANAGER: _MANAGER,
    Role.ADMIN: _ADMIN,
}


def can(context: TenantContext, action: str, resource_type: str) -> bool:
    """Return True if the principal's role permits ``action`` on ``resource_type``."""
    if is_platform_admin(context):
        return True
    try:
        table = PERMISSIONS[Role(context.role)]
        return Action(action) in table.get(ResourceType(resource_type), frozenset())
    except ValueError:
        # Unknown role, action or resource type grants nothing
        return False


def require(context: TenantContext, action: str, resource_type: str) -> None:
    """Raise unless the principal may perform ``action`` on ``resource_type``.

    A principal without a company gets NoTenantAssigned rather than
    InsufficientRole so the caller can route it to onboarding.
    """
    if not is_platform_admin(context) and context.company_id is None:
        raise NoTenantAssigned("No company assigned")
    if not can(context, action, resource_type):
        logger.info(
            "role_denied",
            user_id=context.user_id,
            role=context.role,
            action=action,
            resource_type=resource_type,
        )
        raise InsufficientRole(action, resource_type)


# Principals may only grant, or take away, roles up to their own rank
ROLE_RANK: dict[Role, int] = {Role.TECHNICIAN: 0, Role.MANAGER: 1, Role.ADMIN: 2}


def _rank(role: str) -> int | None:
    try:
        return ROLE_RANK[Role(role)]
    except ValueError:
        return None


def require_role_grant(
    context: TenantContext, role: str, current_role: str | None = None
) -> None:
    """Raise unless the principal may give someone ``role``.

    ``current_role`` is the target's existing role in the same tenant; a
    manager can neither promote anyone to admin nor change an admin's role.
    """
    if is_platform_admin(context):
        return
    caller_rank = _rank(context.role)
    ranks = [_rank(r) for r in (role, current_role) if r is not None]
    if caller_rank is None or any(r is None or r > caller_rank for r in ranks):
        logger.info(
            "role_grant_denied",
            user_id=context.user_id,
            role=context.role,
            requested_role=role,
            current_role=current_role,
        )
        raise InsufficientRole("grant", f"{role} role")
