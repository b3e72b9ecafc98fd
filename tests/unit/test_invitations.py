"""Unit tests for the invitation lifecycle."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import update
from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import (
    InsufficientRole,
    InvitationConflict,
    InvitationInvalid,
    LicenseLimitReached,
    NotFound,
)
from seatguard.models.database import Company, Invitation, User, _utc_now
from seatguard.notifications.email import InvitationNotifier
from seatguard.tenancy.admission import SeatAdmissionController, TenantLockRegistry
from seatguard.tenancy.context import TenantContext
from seatguard.tenancy.invitations import InvitationService, effective_status
from seatguard.types import DeliveryStatus, InvitationStatus, PlatformRole

if TYPE_CHECKING:
    from conftest import Seeder


class RecordingNotifier(InvitationNotifier):
    def __init__(self, status: DeliveryStatus = DeliveryStatus.DELIVERED) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self._status = status

    async def send_invitation(
        self, email: str, link: str, metadata: dict[str, Any]
    ) -> DeliveryStatus:
        self.sent.append((email, link, metadata))
        return self._status


class ExplodingNotifier(InvitationNotifier):
    async def send_invitation(
        self, email: str, link: str, metadata: dict[str, Any]
    ) -> DeliveryStatus:
        raise RuntimeError("smtp relay down")


def _service(seed: Seeder, notifier: InvitationNotifier | None = None) -> InvitationService:
    admission = SeatAdmissionController(seed.engine, locks=TenantLockRegistry())
    return InvitationService(
        seed.engine,
        admission,
        notifier or RecordingNotifier(),
        app_base_url="https://app.example.com/",
    )


async def _admin(seed: Seeder, **company: Any) -> tuple[Company, TenantContext]:
    tenant = await seed.company(**company)
    admin = await seed.user(role="admin", company_id=tenant.id)
    return tenant, TenantContext.from_user(admin)


@pytest.mark.unit
class TestEffectiveStatus:
    def test_pending_past_expiry_reads_expired(self) -> None:
        now = _utc_now()
        invitation = Invitation(
            company_id="c", email="a@example.com", token="t", expires_at=now - timedelta(seconds=1)
        )
        assert effective_status(invitation, now) is InvitationStatus.EXPIRED

    def test_terminal_states_are_kept(self) -> None:
        now = _utc_now()
        invitation = Invitation(
            company_id="c",
            email="a@example.com",
            token="t",
            status="revoked",
            expires_at=now - timedelta(days=1),
        )
        assert effective_status(invitation, now) is InvitationStatus.REVOKED


@pytest.mark.unit
class TestCreateInvitation:
    async def test_persists_pending_and_notifies(self, seed: Seeder) -> None:
        tenant, ctx = await _admin(seed, name="Northside Plant")
        notifier = RecordingNotifier()

        invitation = await _service(seed, notifier).create(ctx, "New.Tech@Example.com", "technician")

        assert invitation.status == InvitationStatus.PENDING
        assert invitation.email == "new.tech@example.com"
        assert invitation.company_id == tenant.id
        assert invitation.invited_by == ctx.user_id
        assert len(invitation.token) == 64
        ttl = invitation.expires_at - invitation.created_at
        assert timedelta(days=6, hours=23) < ttl <= timedelta(days=7)

        email, link, metadata = notifier.sent[0]
        assert email == "new.tech@example.com"
        assert link.startswith(f"https://app.example.com/login?token={invitation.token}")
        assert "email=new.tech%40example.com" in link
        assert metadata["company_name"] == "Northside Plant"
        assert metadata["role"] == "technician"

    async def test_does_not_consume_a_seat(self, seed: Seeder) -> None:
        _, ctx = await _admin(seed, manager_seats=1, tech_seats=0)
        invitation = await _service(seed).create(ctx, "a@example.com", "technician")
        assert invitation.status == InvitationStatus.PENDING

    async def test_technician_cannot_invite(self, seed: Seeder) -> None:
        tenant = await seed.company()
        tech = await seed.user(company_id=tenant.id)
        with pytest.raises(InsufficientRole):
            await _service(seed).create(TenantContext.from_user(tech), "a@example.com", "technician")

    async def test_manager_cannot_invite_an_admin(self, seed: Seeder) -> None:
        tenant = await seed.company(manager_seats=2)
        manager = await seed.user(role="manager", company_id=tenant.id)
        service = _service(seed)

        with pytest.raises(InsufficientRole):
            await service.create(TenantContext.from_user(manager), "boss@example.com", "admin")

        invitation = await service.create(
            TenantContext.from_user(manager), "peer@example.com", "manager"
        )
        assert invitation.role == "manager"

    async def test_foreign_company_is_not_found(self, seed: Seeder) -> None:
        _, ctx = await _admin(seed)
        other = await seed.company(name="Other")
        with pytest.raises(NotFound):
            await _service(seed).create(ctx, "a@example.com", "technician", company_id=other.id)

    async def test_platform_admin_targets_any_company(self, seed: Seeder) -> None:
        tenant = await seed.company()
        operator = await seed.user(platform_role=PlatformRole.PLATFORM_ADMIN)
        invitation = await _service(seed).create(
            TenantContext.from_user(operator), "a@example.com", "manager", company_id=tenant.id
        )
        assert invitation.company_id == tenant.id

    async def test_existing_account_conflicts(self, seed: Seeder) -> None:
        tenant, ctx = await _admin(seed)
        await seed.user(email="taken@example.com", company_id=tenant.id)
        with pytest.raises(InvitationConflict):
            await _service(seed).create(ctx, "taken@example.com", "technician")

    async def test_existing_account_conflicts_regardless_of_case(self, seed: Seeder) -> None:
        tenant, ctx = await _admin(seed)
        await seed.user(email="Taken@Example.com", company_id=tenant.id)
        with pytest.raises(InvitationConflict):
            await _service(seed).create(ctx, "taken@example.com", "technician")

    async def test_second_live_invitation_conflicts(self, seed: Seeder) -> None:
        _, ctx = await _admin(seed)
        service = _service(seed)
        await service.create(ctx, "a@example.com", "technician")
        with pytest.raises(InvitationConflict):
            await service.create(ctx, "A@example.com", "manager")

    async def test_expired_pending_is_replaced(self, seed: Seeder) -> None:
        tenant, ctx = await _admin(seed)
        stale = await seed.invitation(tenant.id, "a@example.com", expires_in=timedelta(days=-1))

        fresh = await _service(seed).create(ctx, "a@example.com", "technician")

        assert fresh.id != stale.id
        assert (await seed.reload(Invitation, stale.id)).status == InvitationStatus.EXPIRED

    async def test_delivery_failure_keeps_invitation(self, seed: Seeder) -> None:
        _, ctx = await _admin(seed)

        invitation = await _service(seed, ExplodingNotifier()).create(
            ctx, "a@example.com", "technician"
        )

        stored = await seed.reload(Invitation, invitation.id)
        assert stored.status == InvitationStatus.PENDING


@pytest.mark.unit
class TestListAndRevoke:
    async def test_list_reports_lazy_expiry_without_writing(self, seed: Seeder) -> None:
        tenant, ctx = await _admin(seed)
        stale = await seed.invitation(tenant.id, "old@example.com", expires_in=timedelta(days=-1))
        await seed.invitation(tenant.id, "new@example.com")

        listed = await _service(seed).list_invitations(ctx)

        statuses = {inv.email: inv.status for inv in listed}
        assert statuses == {"old@example.com": "expired", "new@example.com": "pending"}
        assert (await seed.reload(Invitation, stale.id)).status == InvitationStatus.PENDING

    async def test_list_is_tenant_scoped(self, seed: Seeder) -> None:
        _, ctx = await _admin(seed)
        other = await seed.company(name="Other")
        await seed.invitation(other.id, "theirs@example.com")

        service = _service(seed)
        assert await service.list_invitations(ctx) == []
        with pytest.raises(NotFound):
            await service.list_invitations(ctx, company_id=other.id)

    async def test_revoke_pending(self, seed: Seeder) -> None:
        tenant, ctx = await _admin(seed)
        invitation = await seed.invitation(tenant.id, "a@example.com")

        revoked = await _service(seed).revoke(ctx, invitation.id)

        assert revoked.status == InvitationStatus.REVOKED
        assert (await seed.reload(Invitation, invitation.id)).status == "revoked"

    async def test_revoke_terminal_is_invalid(self, seed: Seeder) -> None:
        tenant, ctx = await _admin(seed)
        invitation = await seed.invitation(
            tenant.id, "a@example.com", status=InvitationStatus.ACCEPTED
        )
        with pytest.raises(InvitationInvalid):
            await _service(seed).revoke(ctx, invitation.id)

    async def test_revoke_foreign_is_not_found(self, seed: Seeder) -> None:
        _, ctx = await _admin(seed)
        other = await seed.company(name="Other")
        invitation = await seed.invitation(other.id, "a@example.com")
        with pytest.raises(NotFound):
            await _service(seed).revoke(ctx, invitation.id)

    async def test_get_by_token_unknown(self, seed: Seeder) -> None:
        with pytest.raises(InvitationInvalid):
            await _service(seed).get_by_token("nope")


@pytest.mark.unit
class TestAcceptInvitation:
    async def test_accept_creates_bound_user(self, seed: Seeder) -> None:
        tenant = await seed.company(tech_seats=1)
        invitation = await seed.invitation(tenant.id, "new@example.com")

        user = await _service(seed).accept(invitation.token, "New@Example.com", "Ada", "Lovelace")

        assert user.company_id == tenant.id
        assert user.role == "technician"
        assert user.first_name == "Ada"
        assert (await seed.reload(Invitation, invitation.id)).status == "accepted"
        assert (await seed.reload(Company, tenant.id)).used_licenses == 1

    async def test_accept_binds_existing_unassigned_user(self, seed: Seeder) -> None:
        tenant = await seed.company(manager_seats=1)
        existing = await seed.user(email="drifter@example.com")
        invitation = await seed.invitation(tenant.id, "drifter@example.com", role="manager")

        user = await _service(seed).accept(invitation.token, "drifter@example.com")

        assert user.id == existing.id
        assert user.role == "manager"
        assert user.company_id == tenant.id

    async def test_existing_user_is_matched_case_insensitively(self, seed: Seeder) -> None:
        tenant = await seed.company(tech_seats=1)
        existing = await seed.user(email="Mixed.Case@Example.com")
        invitation = await seed.invitation(tenant.id, "mixed.case@example.com")

        user = await _service(seed).accept(invitation.token, "mixed.case@example.com")

        assert user.id == existing.id
        assert user.company_id == tenant.id
        assert (await seed.reload(Company, tenant.id)).used_licenses == 1

    async def test_second_acceptance_is_rejected(self, seed: Seeder) -> None:
        tenant = await seed.company(tech_seats=5)
        invitation = await seed.invitation(tenant.id, "new@example.com")
        service = _service(seed)
        await service.accept(invitation.token, "new@example.com")

        with pytest.raises(InvitationInvalid):
            await service.accept(invitation.token, "new@example.com")

        assert (await seed.reload(Company, tenant.id)).used_licenses == 1

    async def test_expired_acceptance_persists_expiry(self, seed: Seeder) -> None:
        tenant = await seed.company(tech_seats=5)
        invitation = await seed.invitation(
            tenant.id, "late@example.com", expires_in=timedelta(minutes=-1)
        )

        with pytest.raises(InvitationInvalid) as exc_info:
            await _service(seed).accept(invitation.token, "late@example.com")

        assert exc_info.value.reason == "expired"
        assert (await seed.reload(Invitation, invitation.id)).status == "expired"
        assert (await seed.reload(Company, tenant.id)).used_licenses == 0

    async def test_email_mismatch(self, seed: Seeder) -> None:
        tenant = await seed.company(tech_seats=5)
        invitation = await seed.invitation(tenant.id, "right@example.com")
        with pytest.raises(InvitationInvalid):
            await _service(seed).accept(invitation.token, "wrong@example.com")

    async def test_revoked_or_unknown(self, seed: Seeder) -> None:
        tenant = await seed.company(tech_seats=5)
        invitation = await seed.invitation(
            tenant.id, "a@example.com", status=InvitationStatus.REVOKED
        )
        service = _service(seed)
        with pytest.raises(InvitationInvalid):
            await service.accept(invitation.token, "a@example.com")
        with pytest.raises(InvitationInvalid):
            await service.accept("unknown-token", "a@example.com")

    async def test_manager_ceiling_then_upgrade(self, seed: Seeder) -> None:
        tenant = await seed.company(manager_seats=2)
        await seed.user(role="manager", company_id=tenant.id)
        await seed.user(role="manager", company_id=tenant.id)
        invitation = await seed.invitation(tenant.id, "third@example.com", role="manager")
        service = _service(seed)

        with pytest.raises(LicenseLimitReached) as exc_info:
            await service.accept(invitation.token, "third@example.com")
        assert (exc_info.value.used, exc_info.value.purchased) == (2, 2)
        assert (await seed.reload(Invitation, invitation.id)).status == "pending"

        async with AsyncSession(seed.engine) as session:
            await session.execute(
                update(Company)
                .where(col(Company.id) == tenant.id)
                .values(purchased_manager_seats=3)
            )
            await session.commit()

        user = await service.accept(invitation.token, "third@example.com")

        assert user.role == "manager"
        assert (await seed.reload(Company, tenant.id)).used_licenses == 3
        assert (await seed.reload(User, user.id)).company_id == tenant.id
