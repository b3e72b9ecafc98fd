"""Row-level tenant scoping guard.

Every read, update and delete of a tenant-owned row goes through
``authorize``. Platform admins are the only principals allowed across tenant
boundaries, and ``is_platform_admin`` is the only place that grants it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from seatguard.exceptions import NoTenantAssigned, NotFound, SeatGuardError
from seatguard.types import PlatformRole

if TYPE_CHECKING:
    from seatguard.tenancy.context import TenantContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of a scoping check. ``error`` is set only on deny."""

    allowed: bool
    error: type[SeatGuardError] | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)
DENY_NO_TENANT = Decision(allowed=False, error=NoTenantAssigned)
DENY_NOT_FOUND = Decision(allowed=False, error=NotFound)


def is_platform_admin(context: TenantContext) -> bool:
    """The single cross-tenant escape hatch."""
    return context.platform_role == PlatformRole.PLATFORM_ADMIN


def authorize(context: TenantContext, resource_tenant_id: str | None) -> Decision:
    """Decide whether ``context`` may touch a row owned by ``resource_tenant_id``.

    A foreign row is reported as NotFound, never Forbidden, so callers cannot
    probe for the existence of another tenant's data.
    """
    if is_platform_admin(context):
        return ALLOW
    if context.company_id is None:
        return DENY_NO_TENANT
    if resource_tenant_id is None or resource_tenant_id != context.company_id:
        logger.info(
            "cross_tenant_access_denied",
            user_id=context.user_id,
            company_id=context.company_id,
            resource_company_id=resource_tenant_id,
        )
        return DENY_NOT_FOUND
    return ALLOW


def authorize_chain(
    context: TenantContext,
    resource_tenant_id: str | None,
    client_company_tenant_id: str | None = None,
    *,
    has_client_company: bool = False,
) -> Decision:
    """Check a resource nested under a client company at both levels.

    ``has_client_company`` marks that the resource references a client
    company; its owning tenant must then match as well. A dangling reference
    (``client_company_tenant_id`` of None) is denied.
    """
    decision = authorize(context, resource_tenant_id)
    if not decision or not has_client_company:
        return decision
    return authorize(context, client_company_tenant_id)


def enforce(decision: Decision, message: str = "Not found") -> None:
    """Raise the error carried by a deny decision."""
    if decision.allowed:
        return
    error = decision.error or NotFound
    if error is NoTenantAssigned:
        raise NoTenantAssigned("No company assigned")
    raise error(message)


def require_access(
    context: TenantContext, resource_tenant_id: str | None, message: str = "Not found"
) -> None:
    """Shorthand for ``enforce(authorize(...))``."""
    enforce(authorize(context, resource_tenant_id), message)
