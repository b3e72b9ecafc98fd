"""Read access to principals, backed by the async SQL engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.models.database import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class DatabaseUserRepository:
    """Read-only user lookups.

    Nothing here binds a user to a company: membership only changes through
    SeatAdmissionController and UserDeletionService.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_by_id(self, user_id: str) -> User | None:
        """Active user by id; deactivated principals resolve to None."""
        async with AsyncSession(self._engine) as session:
            stmt = select(User).where(col(User.id) == user_id, col(User.is_active).is_(True))
            return (await session.execute(stmt)).scalars().first()

    async def get_by_email(self, email: str) -> User | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(User).where(func.lower(col(User.email)) == email.strip().lower())
            return (await session.execute(stmt)).scalars().first()

    async def list_by_company(self, company_id: str) -> list[User]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(User)
                .where(col(User.company_id) == company_id)
                .order_by(col(User.created_at))
            )
            return list((await session.execute(stmt)).scalars().all())

    async def list_all(self) -> list[User]:
        """Every user across tenants; platform admin listings only."""
        async with AsyncSession(self._engine) as session:
            stmt = select(User).order_by(col(User.created_at))
            return list((await session.execute(stmt)).scalars().all())
