"""Tenant context for multi-tenant request scoping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog

from seatguard.exceptions import NoTenantAssigned, Unauthenticated

if TYPE_CHECKING:
    from seatguard.models.database import User
    from seatguard.storage.repositories.users import DatabaseUserRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TenantContext:
    """Immutable principal and tenant context carried through each request."""

    user_id: str
    company_id: str | None
    role: str  # technician | manager | admin
    platform_role: str | None = None
    email: str = ""

    @classmethod
    def from_user(cls, user: User) -> TenantContext:
        return cls(
            user_id=user.id,
            company_id=user.company_id,
            role=user.role,
            platform_role=user.platform_role,
            email=user.email,
        )


class IdentityProvider(Protocol):
    """Resolves an opaque session token to a principal id."""

    def resolve_principal(self, token: str) -> str | None: ...


class TenantContextLoader:
    """Builds a TenantContext from a session token.

    Read-only: it never writes, so calling it twice yields equal contexts.
    """

    def __init__(self, identity: IdentityProvider, users: DatabaseUserRepository) -> None:
        self._identity = identity
        self._users = users

    async def load(self, token: str | None, *, require_company: bool = True) -> TenantContext:
        """Resolve the principal behind ``token`` into a TenantContext.

        Raises Unauthenticated when the token or user cannot be resolved, and
        NoTenantAssigned when ``require_company`` is set and the user has no
        company yet (callers redirect those users to onboarding).
        """
        if not token:
            raise Unauthenticated("Missing session token")

        user_id = self._identity.resolve_principal(token)
        if not user_id:
            raise Unauthenticated("Invalid or expired session")

        # Always read a fresh record so role and platform_role changes apply immediately
        user = await self._users.get_by_id(user_id)
        if user is None:
            logger.warning("tenant_context_user_missing", user_id=user_id)
            raise Unauthenticated("User not found or inactive")

        context = TenantContext.from_user(user)
        if require_company and context.company_id is None:
            raise NoTenantAssigned("No company assigned")
        return context
