"""Subscription status as seen by seat reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import NotFound
from seatguard.models.database import Company
from seatguard.types import RoleClass, SubscriptionStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Statuses whose seat quantities the platform honors
HONORED_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


@dataclass(frozen=True, slots=True)
class SubscriptionSnapshot:
    """Billing state of one tenant at a point in time."""

    status: SubscriptionStatus
    seats_manager: int = 0
    seats_tech: int = 0


class SubscriptionStatusProvider(Protocol):
    async def subscription_status(self, company_id: str) -> SubscriptionSnapshot: ...


class StoredSubscriptionProvider:
    """Reads the billing mirror columns stored on ``Company``."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def subscription_status(self, company_id: str) -> SubscriptionSnapshot:
        async with AsyncSession(self._engine) as session:
            company = await session.get(Company, company_id)
        if company is None:
            raise NotFound("Company not found")
        try:
            status = SubscriptionStatus(company.subscription_status)
        except ValueError:
            status = SubscriptionStatus.NONE
        return SubscriptionSnapshot(
            status=status,
            seats_manager=company.subscription_manager_seats,
            seats_tech=company.subscription_tech_seats,
        )


def effective_seats(snapshot: SubscriptionSnapshot) -> dict[RoleClass, int]:
    """Seats the tenant may use; a lapsed subscription grants none."""
    if snapshot.status not in HONORED_STATUSES:
        return {RoleClass.MANAGER: 0, RoleClass.TECH: 0}
    return {
        RoleClass.MANAGER: max(0, snapshot.seats_manager),
        RoleClass.TECH: max(0, snapshot.seats_tech),
    }
