"""Periodic reconciliation of purchased seats against subscription state.

Runs outside the request path. Admission only reads ``purchased_*_seats``;
this job is what lowers them when a subscription lapses and restores them
when it becomes active again. Members already bound keep their membership;
an over-limit tenant simply cannot admit anyone until seats free up.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.billing.subscriptions import (
    HONORED_STATUSES,
    StoredSubscriptionProvider,
    effective_seats,
)
from seatguard.exceptions import NotFound
from seatguard.models.database import Company, _utc_now
from seatguard.tenancy.ledger import LicenseLedger
from seatguard.types import RoleClass

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from seatguard.billing.subscriptions import SubscriptionStatusProvider

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    company_id: str
    status: str
    manager_seats: int
    tech_seats: int
    used_licenses: int
    changed: bool


class SeatReconciler:
    """Writes effective seats into each tenant and refreshes its counter."""

    def __init__(
        self,
        engine: AsyncEngine,
        provider: SubscriptionStatusProvider | None = None,
        ledger: LicenseLedger | None = None,
    ) -> None:
        self._engine = engine
        self._provider = provider or StoredSubscriptionProvider(engine)
        self._ledger = ledger or LicenseLedger(engine)

    async def reconcile(self, company_id: str) -> ReconcileResult:
        snapshot = await self._provider.subscription_status(company_id)
        seats = effective_seats(snapshot)

        async with AsyncSession(self._engine) as session:
            company = await session.get(Company, company_id)
            if company is None:
                raise NotFound("Company not found")
            changed = (
                company.purchased_manager_seats != seats[RoleClass.MANAGER]
                or company.purchased_tech_seats != seats[RoleClass.TECH]
            )
            company.purchased_manager_seats = seats[RoleClass.MANAGER]
            company.purchased_tech_seats = seats[RoleClass.TECH]
            company.subscription_status = snapshot.status.value
            company.payment_restricted = snapshot.status not in HONORED_STATUSES
            company.updated_at = _utc_now()
            session.add(company)
            await session.commit()

        used = await self._ledger.recompute_used_licenses(company_id)
        if changed:
            logger.info(
                "seats_reconciled",
                company_id=company_id,
                status=str(snapshot.status),
                manager_seats=seats[RoleClass.MANAGER],
                tech_seats=seats[RoleClass.TECH],
                used_licenses=used,
            )
        return ReconcileResult(
            company_id=company_id,
            status=str(snapshot.status),
            manager_seats=seats[RoleClass.MANAGER],
            tech_seats=seats[RoleClass.TECH],
            used_licenses=used,
            changed=changed,
        )

    async def reconcile_all(self) -> list[ReconcileResult]:
        """Reconcile every tenant; one failing tenant does not stop the rest."""
        async with AsyncSession(self._engine) as session:
            result = await session.execute(select(Company.id).order_by(col(Company.created_at)))
            company_ids = list(result.scalars().all())

        results: list[ReconcileResult] = []
        for company_id in company_ids:
            try:
                results.append(await self.reconcile(company_id))
            except Exception:
                logger.exception("seat_reconcile_failed", company_id=company_id)
        logger.info("seat_reconcile_done", companies=len(company_ids), reconciled=len(results))
        return results
