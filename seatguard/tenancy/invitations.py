"""Invitation lifecycle.

    pending -> accepted   (exactly once, consumes a seat via SeatAdmissionController)
    pending -> expired    (derived lazily from ``expires_at``, no sweeper needed)
    pending -> revoked    (admin action)

Terminal states never transition again.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import InvitationConflict, InvitationInvalid, NotFound
from seatguard.models.database import Company, Invitation, _utc_now
from seatguard.storage.repositories.invitations import DatabaseInvitationRepository
from seatguard.storage.repositories.users import DatabaseUserRepository
from seatguard.tenancy import roles
from seatguard.tenancy.scoping import is_platform_admin, require_access
from seatguard.types import Action, InvitationStatus, ResourceType, Role

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from seatguard.models.database import User
    from seatguard.notifications.email import InvitationNotifier
    from seatguard.tenancy.admission import SeatAdmissionController
    from seatguard.tenancy.context import TenantContext

logger = structlog.get_logger(__name__)

DEFAULT_TTL_DAYS = 7


def effective_status(invitation: Invitation, now: datetime | None = None) -> InvitationStatus:
    """Status as observed at ``now``: a pending invitation past its expiry reads as expired."""
    status = InvitationStatus(invitation.status)
    if status is InvitationStatus.PENDING and invitation.expires_at <= (now or _utc_now()):
        return InvitationStatus.EXPIRED
    return status


def _as_observed(invitation: Invitation, now: datetime) -> Invitation:
    """Detached copy carrying the effective status; never persisted."""
    data = invitation.model_dump()
    data["status"] = effective_status(invitation, now).value
    return Invitation(**data)


class InvitationService:
    """Creates, lists, revokes and accepts tenant invitations."""

    def __init__(
        self,
        engine: AsyncEngine,
        admission: SeatAdmissionController,
        notifier: InvitationNotifier,
        *,
        ttl_days: int = DEFAULT_TTL_DAYS,
        app_base_url: str = "http://localhost:8000",
    ) -> None:
        self._engine = engine
        self._admission = admission
        self._notifier = notifier
        self._ttl_days = ttl_days
        self._app_base_url = app_base_url.rstrip("/")
        self._invitations = DatabaseInvitationRepository(engine)
        self._users = DatabaseUserRepository(engine)

    async def create(
        self,
        context: TenantContext,
        email: str,
        role: str,
        company_id: str | None = None,
    ) -> Invitation:
        """Create a pending invitation and send it.

        The invitation is persisted before delivery is attempted; a failed or
        skipped email never undoes it. Seats are consumed on acceptance, not
        here.
        """
        roles.require(context, Action.CREATE, ResourceType.INVITATION)
        roles.require_role_grant(context, role)
        target_company_id = company_id or context.company_id
        require_access(context, target_company_id, "Company not found")

        async with AsyncSession(self._engine) as session:
            company = await session.get(Company, target_company_id) if target_company_id else None
        if company is None:
            raise NotFound("Company not found")

        email = email.strip().lower()
        existing_user = await self._users.get_by_email(email)
        if existing_user is not None and existing_user.company_id is not None:
            raise InvitationConflict("User with this email already exists")

        now = _utc_now()
        for pending in await self._invitations.list_pending_for_email(company.id, email):
            if effective_status(pending, now) is not InvitationStatus.EXPIRED:
                raise InvitationConflict("Invitation already sent to this email")
            await self._invitations.transition(
                pending.id, InvitationStatus.PENDING, InvitationStatus.EXPIRED
            )

        invitation = Invitation(
            company_id=company.id,
            email=email,
            role=Role(role).value,
            token=secrets.token_hex(32),
            status=InvitationStatus.PENDING.value,
            expires_at=now + timedelta(days=self._ttl_days),
            invited_by=context.user_id,
        )
        try:
            invitation = await self._invitations.create(invitation)
        except IntegrityError as exc:
            # Lost a race against a concurrent invitation for the same email
            raise InvitationConflict("Invitation already sent to this email") from exc

        logger.info(
            "invitation_created",
            invitation_id=invitation.id,
            company_id=company.id,
            role=invitation.role,
            invited_by=context.user_id,
        )
        await self._notify(context, company, invitation)
        return invitation

    async def list_invitations(
        self, context: TenantContext, company_id: str | None = None
    ) -> list[Invitation]:
        """List a tenant's invitations with lazily expired statuses applied.

        Platform admins may omit ``company_id`` to list every tenant.
        """
        roles.require(context, Action.READ, ResourceType.INVITATION)
        if is_platform_admin(context):
            scope = company_id
        else:
            scope = company_id or context.company_id
            require_access(context, scope, "Company not found")

        now = _utc_now()
        return [_as_observed(inv, now) for inv in await self._invitations.list_by_company(scope)]

    async def get_by_token(self, token: str) -> Invitation:
        invitation = await self._invitations.get_by_token(token)
        if invitation is None:
            raise InvitationInvalid("unknown token")
        return _as_observed(invitation, _utc_now())

    async def revoke(self, context: TenantContext, invitation_id: str) -> Invitation:
        roles.require(context, Action.DELETE, ResourceType.INVITATION)
        invitation = await self._invitations.get(invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found")
        require_access(context, invitation.company_id, "Invitation not found")

        status = effective_status(invitation)
        if status is InvitationStatus.EXPIRED and invitation.status == InvitationStatus.PENDING:
            await self._invitations.transition(
                invitation.id, InvitationStatus.PENDING, InvitationStatus.EXPIRED
            )
            raise InvitationInvalid("expired")
        if status is not InvitationStatus.PENDING:
            raise InvitationInvalid(str(status))

        if not await self._invitations.transition(
            invitation.id, InvitationStatus.PENDING, InvitationStatus.REVOKED
        ):
            # Accepted or revoked between our read and the update
            raise InvitationInvalid("no longer pending")

        logger.info("invitation_revoked", invitation_id=invitation.id, revoked_by=context.user_id)
        invitation.status = InvitationStatus.REVOKED.value
        return invitation

    async def accept(
        self, token: str, email: str, first_name: str = "", last_name: str = ""
    ) -> User:
        """Accept an invitation; the seat is taken by the admission controller."""
        return await self._admission.admit_invitation(token, email, first_name, last_name)

    async def _notify(
        self, context: TenantContext, company: Company, invitation: Invitation
    ) -> None:
        link = (
            f"{self._app_base_url}/login?token={invitation.token}"
            f"&email={quote(invitation.email)}"
        )
        inviter = await self._users.get_by_id(context.user_id)
        inviter_name = ""
        if inviter is not None:
            inviter_name = f"{inviter.first_name} {inviter.last_name}".strip() or inviter.email
        metadata = {
            "company_name": company.name,
            "inviter_name": inviter_name or "A team member",
            "role": invitation.role,
            "expires_in_days": self._ttl_days,
        }
        try:
            status = await self._notifier.send_invitation(invitation.email, link, metadata)
        except Exception:
            # Delivery must never undo a persisted invitation
            logger.exception("invitation_notify_failed", invitation_id=invitation.id)
            return
        logger.info("invitation_notified", invitation_id=invitation.id, delivery=str(status))
