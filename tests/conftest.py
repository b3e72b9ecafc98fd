"""Shared test fixtures."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.models.database import Company, Invitation, User, _utc_now
from seatguard.types import InvitationStatus, Role

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


class Seeder:
    """Inserts rows directly, bypassing admission, for test setup."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._counter = 0

    async def _add(self, row: SQLModel) -> SQLModel:
        async with AsyncSession(self.engine, expire_on_commit=False) as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return row

    async def company(
        self, name: str = "Acme Plant", manager_seats: int = 0, tech_seats: int = 0, **kwargs: object
    ) -> Company:
        company = Company(
            name=name,
            purchased_manager_seats=manager_seats,
            purchased_tech_seats=tech_seats,
            **kwargs,
        )
        return await self._add(company)  # type: ignore[return-value]

    async def user(
        self,
        email: str | None = None,
        role: str = Role.TECHNICIAN,
        company_id: str | None = None,
        platform_role: str | None = None,
        is_active: bool = True,
    ) -> User:
        self._counter += 1
        user = User(
            email=email or f"user{self._counter}@example.com",
            role=Role(role).value,
            company_id=company_id,
            platform_role=platform_role,
            is_active=is_active,
        )
        return await self._add(user)  # type: ignore[return-value]

    async def invitation(
        self,
        company_id: str,
        email: str,
        role: str = Role.TECHNICIAN,
        expires_in: timedelta = timedelta(days=7),
        status: str = InvitationStatus.PENDING,
        token: str | None = None,
    ) -> Invitation:
        self._counter += 1
        invitation = Invitation(
            company_id=company_id,
            email=email,
            role=Role(role).value,
            token=token or f"token-{self._counter}-{email}",
            status=InvitationStatus(status).value,
            expires_at=_utc_now() + expires_in,
        )
        return await self._add(invitation)  # type: ignore[return-value]

    async def reload(self, model: type[SQLModel], row_id: str) -> SQLModel | None:
        async with AsyncSession(self.engine) as session:
            return await session.get(model, row_id)


async def _create_engine(url: str) -> AsyncEngine:
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = await _create_engine("sqlite+aiosqlite:///:memory:")
    yield engine
    await engine.dispose()


@pytest.fixture()
async def file_engine(tmp_path: Path):
    """File-backed SQLite engine; each session gets its own connection.

    Needed wherever sessions run concurrently, since the in-memory engine
    shares a single connection.
    """
    engine = await _create_engine(f"sqlite+aiosqlite:///{tmp_path / 'seatguard.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture()
def seed(async_engine: AsyncEngine) -> Seeder:
    return Seeder(async_engine)


@pytest.fixture()
def file_seed(file_engine: AsyncEngine) -> Seeder:
    return Seeder(file_engine)
