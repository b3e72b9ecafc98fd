"""Unit tests for SeatAdmissionController."""

from __future__ import annotations

import asyncio
import gc
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import LicenseLimitReached, NotFound, TransientStorageError
from seatguard.models.database import Company, Invitation, User
from seatguard.tenancy.admission import SeatAdmissionController, TenantLockRegistry
from seatguard.tenancy.ledger import LicenseLedger
from seatguard.types import InvitationStatus, RoleClass

if TYPE_CHECKING:
    from conftest import Seeder
    from sqlalchemy.ext.asyncio import AsyncEngine


def _controller(engine: AsyncEngine, **kwargs: object) -> SeatAdmissionController:
    return SeatAdmissionController(
        engine, locks=TenantLockRegistry(), retry_delay_ms=1, **kwargs  # type: ignore[arg-type]
    )


async def _members(engine: AsyncEngine, company_id: str) -> int:
    async with AsyncSession(engine) as session:
        stmt = select(func.count()).select_from(User).where(col(User.company_id) == company_id)
        return int((await session.execute(stmt)).scalar_one())


@pytest.mark.unit
class TestAdmit:
    async def test_binds_unassigned_user(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=2)
        user = await seed.user()

        admitted = await _controller(seed.engine).admit(company.id, user.id)

        assert admitted.company_id == company.id
        refreshed = await seed.reload(Company, company.id)
        assert refreshed.used_licenses == 1

    async def test_rejects_when_pool_is_full(self, seed: Seeder) -> None:
        company = await seed.company(manager_seats=5, tech_seats=1)
        await seed.user(company_id=company.id)
        newcomer = await seed.user()

        with pytest.raises(LicenseLimitReached) as exc_info:
            await _controller(seed.engine).admit(company.id, newcomer.id)

        assert exc_info.value.role_class == RoleClass.TECH
        assert exc_info.value.used == 1
        assert exc_info.value.purchased == 1
        refreshed = await seed.reload(User, newcomer.id)
        assert refreshed.company_id is None

    async def test_role_sets_the_pool(self, seed: Seeder) -> None:
        company = await seed.company(manager_seats=1, tech_seats=0)
        user = await seed.user()

        admitted = await _controller(seed.engine).admit(company.id, user.id, role="manager")

        assert admitted.role == "manager"

    async def test_user_of_another_tenant_is_not_found(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=5)
        other = await seed.company(name="Other", tech_seats=5)
        user = await seed.user(company_id=other.id)

        with pytest.raises(NotFound):
            await _controller(seed.engine).admit(company.id, user.id)

    async def test_inactive_or_missing_user_is_not_found(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=5)
        inactive = await seed.user(is_active=False)
        controller = _controller(seed.engine)

        with pytest.raises(NotFound):
            await controller.admit(company.id, inactive.id)
        with pytest.raises(NotFound):
            await controller.admit(company.id, "missing")

    async def test_unknown_company_is_not_found(self, seed: Seeder) -> None:
        user = await seed.user()
        with pytest.raises(NotFound):
            await _controller(seed.engine).admit("missing", user.id)

    async def test_role_change_within_pool_skips_check(self, seed: Seeder) -> None:
        company = await seed.company(manager_seats=1)
        manager = await seed.user(role="manager", company_id=company.id)

        promoted = await _controller(seed.engine).admit(company.id, manager.id, role="admin")

        assert promoted.role == "admin"

    async def test_role_change_across_pools_is_checked(self, seed: Seeder) -> None:
        company = await seed.company(manager_seats=1, tech_seats=1)
        await seed.user(role="manager", company_id=company.id)
        tech = await seed.user(role="technician", company_id=company.id)

        with pytest.raises(LicenseLimitReached):
            await _controller(seed.engine).admit(company.id, tech.id, role="manager")

        refreshed = await seed.reload(User, tech.id)
        assert refreshed.role == "technician"

    async def test_accepting_into_the_other_pool_is_checked(self, seed: Seeder) -> None:
        company = await seed.company(manager_seats=0, tech_seats=1)
        user = await seed.user(email="switch@example.com")
        invitation = await seed.invitation(company.id, "switch@example.com", role="manager")
        controller = _controller(seed.engine)
        await controller.admit(company.id, user.id)

        with pytest.raises(LicenseLimitReached) as exc_info:
            await controller.admit_invitation(invitation.token, "switch@example.com")

        assert exc_info.value.role_class == RoleClass.MANAGER
        assert (exc_info.value.used, exc_info.value.purchased) == (0, 0)
        assert (await seed.reload(User, user.id)).role == "technician"
        assert (await seed.reload(Invitation, invitation.id)).status == "pending"

    async def test_accepting_into_the_same_pool_keeps_the_seat(self, seed: Seeder) -> None:
        company = await seed.company(manager_seats=1)
        user = await seed.user(email="lead@example.com")
        invitation = await seed.invitation(company.id, "lead@example.com", role="admin")
        controller = _controller(seed.engine)
        await controller.admit(company.id, user.id, role="manager")

        accepted = await controller.admit_invitation(invitation.token, "lead@example.com")

        assert accepted.role == "admin"
        assert (await seed.reload(Company, company.id)).used_licenses == 1


@pytest.mark.unit
class TestAdmissionUnderConcurrency:
    async def test_last_technician_seat_goes_to_exactly_one(self, file_seed: Seeder) -> None:
        company = await file_seed.company(tech_seats=1)
        first = await file_seed.user()
        second = await file_seed.user()
        controller = _controller(file_seed.engine)

        results = await asyncio.gather(
            controller.admit(company.id, first.id),
            controller.admit(company.id, second.id),
            return_exceptions=True,
        )

        admitted = [r for r in results if isinstance(r, User)]
        rejected = [r for r in results if isinstance(r, LicenseLimitReached)]
        assert len(admitted) == 1
        assert len(rejected) == 1
        assert await _members(file_seed.engine, company.id) == 1

    async def test_ceiling_holds_for_parallel_acceptances(self, file_seed: Seeder) -> None:
        company = await file_seed.company(tech_seats=5)
        for _ in range(4):
            await file_seed.user(company_id=company.id)
        invitations = [
            await file_seed.invitation(company.id, f"candidate{i}@example.com")
            for i in range(10)
        ]
        controller = _controller(file_seed.engine)

        results = await asyncio.gather(
            *(controller.admit_invitation(inv.token, inv.email) for inv in invitations),
            return_exceptions=True,
        )

        admitted = [r for r in results if isinstance(r, User)]
        rejected = [r for r in results if isinstance(r, LicenseLimitReached)]
        assert len(admitted) == 1
        assert len(rejected) == 9
        assert await _members(file_seed.engine, company.id) == 5
        async with AsyncSession(file_seed.engine) as session:
            stmt = select(Invitation).where(
                col(Invitation.status) == InvitationStatus.ACCEPTED.value
            )
            accepted = (await session.execute(stmt)).scalars().all()
        assert [inv.email for inv in accepted] == [admitted[0].email]
        refreshed = await file_seed.reload(Company, company.id)
        assert refreshed.used_licenses == 5


@pytest.mark.unit
class TestTenantLockRegistry:
    async def test_tenants_get_distinct_locks(self) -> None:
        registry = TenantLockRegistry()
        lock_a = registry.get("company-a")

        assert registry.get("company-a") is lock_a
        assert registry.get("company-b") is not lock_a

    async def test_held_lock_does_not_block_another_tenant(self, seed: Seeder) -> None:
        busy = await seed.company(name="Busy", tech_seats=1)
        idle = await seed.company(name="Idle", tech_seats=1)
        user = await seed.user()
        registry = TenantLockRegistry()
        controller = SeatAdmissionController(seed.engine, locks=registry, retry_delay_ms=1)

        async with registry.get(busy.id):
            admitted = await asyncio.wait_for(controller.admit(idle.id, user.id), timeout=2)

        assert admitted.company_id == idle.id

    async def test_idle_locks_are_dropped(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=1)
        user = await seed.user()
        registry = TenantLockRegistry()
        controller = SeatAdmissionController(seed.engine, locks=registry, retry_delay_ms=1)

        async with registry.get(company.id):
            assert len(registry) == 1
        await controller.admit(company.id, user.id)
        gc.collect()

        assert len(registry) == 0


@pytest.mark.unit
class TestDirectBindAndRelease:
    async def test_direct_bind_skips_capacity_check(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=0)
        user = await seed.user()

        bound = await _controller(seed.engine).direct_bind(
            company.id, user.id, reason="bulk_import"
        )

        assert bound.company_id == company.id
        refreshed = await seed.reload(Company, company.id)
        assert refreshed.used_licenses == 1

    async def test_direct_bind_refreshes_previous_tenant(self, seed: Seeder) -> None:
        source = await seed.company(name="Source", tech_seats=1)
        target = await seed.company(name="Target", tech_seats=1)
        user = await seed.user(company_id=source.id)
        controller = _controller(seed.engine)
        await LicenseLedger(seed.engine).recompute_used_licenses(source.id)
        assert (await seed.reload(Company, source.id)).used_licenses == 1

        await controller.direct_bind(target.id, user.id, reason="platform_admin")

        assert (await seed.reload(Company, source.id)).used_licenses == 0
        assert (await seed.reload(Company, target.id)).used_licenses == 1

    async def test_release_frees_the_seat(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=1)
        member = await seed.user(company_id=company.id)
        newcomer = await seed.user()
        controller = _controller(seed.engine)

        await controller.release(company.id, member.id)
        admitted = await controller.admit(company.id, newcomer.id)

        assert admitted.company_id == company.id
        assert (await seed.reload(User, member.id)).company_id is None

    async def test_release_of_foreign_user_is_not_found(self, seed: Seeder) -> None:
        company = await seed.company()
        other = await seed.company(name="Other")
        user = await seed.user(company_id=other.id)
        with pytest.raises(NotFound):
            await _controller(seed.engine).release(company.id, user.id)


class _FlakyController(SeatAdmissionController):
    """Fails the transactional unit a fixed number of times before delegating."""

    def __init__(self, *args: object, error: Exception, failures: int, **kwargs: object) -> None:
        self.calls = 0
        self._error = error
        self._failures = failures
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]

    async def _bind(self, company_id: str, user_id: str, role: str | None) -> User:
        self.calls += 1
        if self.calls <= self._failures:
            raise self._error
        return await super()._bind(company_id, user_id, role)


@pytest.mark.unit
class TestAdmissionRetry:
    async def test_transient_failure_is_retried(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=1)
        user = await seed.user()
        controller = _FlakyController(
            seed.engine,
            error=TransientStorageError("deadlock detected"),
            failures=2,
            locks=TenantLockRegistry(),
            max_attempts=3,
            retry_delay_ms=1,
        )

        admitted = await controller.admit(company.id, user.id)

        assert admitted.company_id == company.id
        assert controller.calls == 3

    async def test_exhausted_retries_propagate(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=1)
        user = await seed.user()
        controller = _FlakyController(
            seed.engine,
            error=TransientStorageError("could not serialize access"),
            failures=5,
            locks=TenantLockRegistry(),
            max_attempts=2,
            retry_delay_ms=1,
        )

        with pytest.raises(TransientStorageError):
            await controller.admit(company.id, user.id)
        assert controller.calls == 2

    async def test_business_failure_is_not_retried(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=1)
        user = await seed.user()
        controller = _FlakyController(
            seed.engine,
            error=LicenseLimitReached("tech", 1, 1),
            failures=5,
            locks=TenantLockRegistry(),
            max_attempts=3,
            retry_delay_ms=1,
        )

        with pytest.raises(LicenseLimitReached):
            await controller.admit(company.id, user.id)
        assert controller.calls == 1

    async def test_counter_refresh_failure_does_not_undo_admission(self, seed: Seeder) -> None:
        company = await seed.company(tech_seats=1)
        user = await seed.user()
        ledger = AsyncMock()
        ledger.recompute_used_licenses.side_effect = OperationalError("UPDATE", {}, Exception())
        controller = _controller(seed.engine, ledger=ledger)

        admitted = await controller.admit(company.id, user.id)

        assert admitted.company_id == company.id
        ledger.recompute_used_licenses.assert_awaited_once_with(company.id)
