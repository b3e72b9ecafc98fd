"""License ledger: purchased versus consumed seats per tenant.

``Company.used_licenses`` is only a display cache. Admission decisions always
re-derive usage from a live count of users bound to the tenant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import NotFound
from seatguard.models.database import Company, Invitation, User, _utc_now
from seatguard.types import CONSUMING_ROLES, ROLE_CLASS_MEMBERS, InvitationStatus, RoleClass

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SeatCapacity:
    """Seats purchased and in use for one role class."""

    purchased: int
    used: int

    @property
    def available(self) -> int:
        return max(0, self.purchased - self.used)

    @property
    def has_free_seat(self) -> bool:
        return self.used < self.purchased


@dataclass(frozen=True, slots=True)
class SeatBreakdown:
    """Display view of a tenant's seats, including pending invitations."""

    purchased: dict[RoleClass, int]
    used: dict[RoleClass, int]
    pending: dict[RoleClass, int]
    used_licenses: int = 0  # cached counter as last recomputed

    @property
    def available(self) -> dict[RoleClass, int]:
        return {
            rc: max(0, self.purchased[rc] - self.used[rc] - self.pending[rc]) for rc in RoleClass
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "used_licenses": self.used_licenses,
            "purchased": {str(rc): n for rc, n in self.purchased.items()},
            "used": {str(rc): n for rc, n in self.used.items()},
            "pending": {str(rc): n for rc, n in self.pending.items()},
            "available": {str(rc): n for rc, n in self.available.items()},
        }


def purchased_seats(company: Company, role_class: RoleClass) -> int:
    if role_class is RoleClass.MANAGER:
        return company.purchased_manager_seats or 0
    return company.purchased_tech_seats or 0


async def count_members(session: AsyncSession, company_id: str, roles: Iterable[str]) -> int:
    """Live count of users bound to ``company_id`` with one of ``roles``."""
    stmt = (
        select(func.count())
        .select_from(User)
        .where(
            col(User.company_id) == company_id,
            col(User.role).in_([str(r) for r in roles]),
        )
    )
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def capacity_in(
    session: AsyncSession, company: Company, role_class: RoleClass
) -> SeatCapacity:
    """Compute capacity inside an already open session or transaction."""
    used = await count_members(session, company.id, ROLE_CLASS_MEMBERS[role_class])
    return SeatCapacity(purchased=purchased_seats(company, role_class), used=used)


class LicenseLedger:
    """Reads seat capacity and maintains the cached ``used_licenses`` counter."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def capacity_for(self, company_id: str, role_class: RoleClass) -> SeatCapacity:
        async with AsyncSession(self._engine) as session:
            company = await session.get(Company, company_id)
            if company is None:
                raise NotFound("Company not found")
            return await capacity_in(session, company, role_class)

    async def breakdown(self, company_id: str) -> SeatBreakdown:
        async with AsyncSession(self._engine) as session:
            company = await session.get(Company, company_id)
            if company is None:
                raise NotFound("Company not found")

            used: dict[RoleClass, int] = {}
            pending: dict[RoleClass, int] = {}
            now = _utc_now()
            for role_class, roles in ROLE_CLASS_MEMBERS.items():
                used[role_class] = await count_members(session, company_id, roles)
                stmt = (
                    select(func.count())
                    .select_from(Invitation)
                    .where(
                        col(Invitation.company_id) == company_id,
                        col(Invitation.status) == InvitationStatus.PENDING.value,
                        col(Invitation.expires_at) > now,
                        col(Invitation.role).in_([str(r) for r in roles]),
                    )
                )
                pending[role_class] = int((await session.execute(stmt)).scalar_one())

            return SeatBreakdown(
                purchased={rc: purchased_seats(company, rc) for rc in RoleClass},
                used=used,
                pending=pending,
                used_licenses=company.used_licenses,
            )

    async def recompute_used_licenses(self, company_id: str) -> int:
        """Persist the live consuming-user count into ``Company.used_licenses``."""
        async with AsyncSession(self._engine) as session:
            used = await count_members(session, company_id, CONSUMING_ROLES)
            await session.execute(
                update(Company)
                .where(col(Company.id) == company_id)
                .values(used_licenses=used, updated_at=_utc_now())
            )
            await session.commit()
        logger.debug("used_licenses_recomputed", company_id=company_id, used=used)
        return used
