"""Invitation repository, backed by the async SQL engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.models.database import Invitation, _utc_now
from seatguard.types import InvitationStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class DatabaseInvitationRepository:
    """Stores invitations. Status transitions are guarded by their callers."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, invitation: Invitation) -> Invitation:
        async with AsyncSession(self._engine) as session:
            session.add(invitation)
            await session.commit()
            await session.refresh(invitation)
        logger.debug("invitation_stored", invitation_id=invitation.id)
        return invitation

    async def get(self, invitation_id: str) -> Invitation | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(Invitation, invitation_id)

    async def get_by_token(self, token: str) -> Invitation | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(Invitation).where(col(Invitation.token) == token)
            return (await session.execute(stmt)).scalars().first()

    async def list_pending_for_email(self, company_id: str, email: str) -> list[Invitation]:
        async with AsyncSession(self._engine) as session:
            stmt = select(Invitation).where(
                col(Invitation.company_id) == company_id,
                col(Invitation.email) == email,
                col(Invitation.status) == InvitationStatus.PENDING.value,
            )
            return list((await session.execute(stmt)).scalars().all())

    async def list_by_company(self, company_id: str | None = None) -> list[Invitation]:
        """List invitations newest first; ``None`` lists every tenant's."""
        async with AsyncSession(self._engine) as session:
            stmt = select(Invitation).order_by(col(Invitation.created_at).desc())
            if company_id is not None:
                stmt = stmt.where(col(Invitation.company_id) == company_id)
            return list((await session.execute(stmt)).scalars().all())

    async def transition(
        self, invitation_id: str, from_status: InvitationStatus, to_status: InvitationStatus
    ) -> bool:
        """Compare-and-set a status; False when the row was no longer ``from_status``."""
        async with AsyncSession(self._engine) as session:
            result = await session.execute(
                update(Invitation)
                .where(
                    col(Invitation.id) == invitation_id,
                    col(Invitation.status) == from_status.value,
                )
                .values(status=to_status.value, updated_at=_utc_now())
            )
            await session.commit()
            return bool(result.rowcount)
