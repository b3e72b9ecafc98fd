"""Seat admission controller.

Binding a user to a tenant consumes a paid seat. Counting current usage,
comparing it with the purchased limit and binding the user run as one unit:

* a per-tenant ``asyncio.Lock`` serializes admissions inside this process
  without making tenants contend with each other, and
* inside it, a transaction takes a row lock on the company
  (``SELECT ... FOR UPDATE``) so admissions from other worker processes are
  linearized by the database as well.

The commit is the point of no return. A client that disconnects after the
commit keeps its admission.

``direct_bind`` is the only other writer of tenant membership. It skips the
capacity check and is reserved for platform-admin moves and bulk import.
"""

from __future__ import annotations

import asyncio
import weakref
from typing import TYPE_CHECKING, Literal

import structlog
from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import (
    InvitationInvalid,
    LicenseLimitReached,
    NotFound,
    StorageError,
    TransientStorageError,
)
from seatguard.models.database import Company, Invitation, User, _utc_now
from seatguard.storage.database import is_transient
from seatguard.tenancy.invitations import effective_status
from seatguard.tenancy.ledger import LicenseLedger, capacity_in
from seatguard.types import InvitationStatus, Role, RoleClass, role_class_for
from seatguard.utils.retry import retry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

DirectBindReason = Literal["platform_admin", "bulk_import"]


class TenantLockRegistry:
    """One asyncio.Lock per company id, created on first use.

    Entries are weak: a lock lives only while a holder or waiter references
    it, so idle tenants do not accumulate.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, company_id: str) -> asyncio.Lock:
        lock = self._locks.get(company_id)
        if lock is None:
            lock = self._locks[company_id] = asyncio.Lock()
        return lock


# Shared by every controller in the process so concurrent requests serialize
tenant_locks = TenantLockRegistry()


def _storage_error(exc: DBAPIError) -> StorageError:
    if is_transient(exc):
        return TransientStorageError(str(exc.orig))
    return StorageError(str(exc.orig))


async def _lock_company(session: AsyncSession, company_id: str) -> Company:
    stmt = select(Company).where(col(Company.id) == company_id).with_for_update()
    company = (await session.execute(stmt)).scalars().first()
    if company is None:
        raise NotFound("Company not found")
    return company


async def _check_capacity(session: AsyncSession, company: Company, role_class: RoleClass) -> None:
    capacity = await capacity_in(session, company, role_class)
    if not capacity.has_free_seat:
        logger.warning(
            "license_limit_reached",
            company_id=company.id,
            role_class=str(role_class),
            used=capacity.used,
            purchased=capacity.purchased,
        )
        raise LicenseLimitReached(str(role_class), capacity.used, capacity.purchased)


class SeatAdmissionController:
    """Admits users into a tenant against its purchased seat ceiling."""

    def __init__(
        self,
        engine: AsyncEngine,
        ledger: LicenseLedger | None = None,
        *,
        locks: TenantLockRegistry | None = None,
        max_attempts: int = 3,
        retry_delay_ms: int = 50,
    ) -> None:
        self._engine = engine
        self._ledger = ledger or LicenseLedger(engine)
        self._locks = locks or tenant_locks
        # Only serialization failures and deadlocks are retried
        policy = retry(
            max_attempts=max_attempts,
            delay_ms=retry_delay_ms,
            retry_on=(TransientStorageError,),
        )
        self._bind_once = policy(self._bind)
        self._accept_once = policy(self._accept)

    async def admit(self, company_id: str, user_id: str, role: str | None = None) -> User:
        """Bind an existing user to ``company_id``, consuming a seat.

        ``role`` optionally sets the user's role; moving an existing member to
        a role in the other seat pool is checked like a new admission. Raises
        LicenseLimitReached with nothing committed when no seat is free.
        """
        async with self._locks.get(company_id):
            user = await self._bind_once(company_id, user_id, role)
            await self._refresh_counter(company_id)
        logger.info("seat_admitted", company_id=company_id, user_id=user.id, role=user.role)
        return user

    async def admit_invitation(
        self,
        token: str,
        email: str,
        first_name: str = "",
        last_name: str = "",
    ) -> User:
        """Accept a pending invitation and bind its invitee, consuming a seat.

        Acceptance happens at most once: a second call finds the invitation
        accepted and raises InvitationInvalid without touching any seat.
        """
        async with AsyncSession(self._engine) as session:
            stmt = select(Invitation).where(col(Invitation.token) == token)
            invitation = (await session.execute(stmt)).scalars().first()
            if invitation is None:
                raise InvitationInvalid("unknown token")
            company_id = invitation.company_id

        async with self._locks.get(company_id):
            user = await self._accept_once(token, email, first_name, last_name)
            await self._refresh_counter(company_id)
        logger.info("invitation_accepted", company_id=company_id, user_id=user.id, role=user.role)
        return user

    async def direct_bind(
        self,
        company_id: str,
        user_id: str,
        role: str | None = None,
        *,
        reason: DirectBindReason,
    ) -> User:
        """Bind a user without a capacity check.

        Platform operators manage capacity by hand, so this path never
        consults the ledger. It still refreshes the cached counters of both
        the new and the previous tenant.
        """
        try:
            async with AsyncSession(self._engine, expire_on_commit=False) as session:
                async with session.begin():
                    if await session.get(Company, company_id) is None:
                        raise NotFound("Company not found")
                    user = await session.get(User, user_id)
                    if user is None:
                        raise NotFound("User not found")
                    previous_company_id = user.company_id
                    user.company_id = company_id
                    if role:
                        user.role = Role(role).value
                    user.updated_at = _utc_now()
                    session.add(user)
        except DBAPIError as exc:
            raise _storage_error(exc) from exc

        logger.info(
            "seat_direct_bind",
            company_id=company_id,
            previous_company_id=previous_company_id,
            user_id=user_id,
            reason=reason,
        )
        await self._refresh_counter(company_id)
        if previous_company_id and previous_company_id != company_id:
            await self._refresh_counter(previous_company_id)
        return user

    async def release(self, company_id: str, user_id: str) -> User:
        """Unbind a member from its tenant, freeing its seat."""
        try:
            async with AsyncSession(self._engine, expire_on_commit=False) as session:
                async with session.begin():
                    user = await session.get(User, user_id)
                    if user is None or user.company_id != company_id:
                        raise NotFound("User not found")
                    user.company_id = None
                    user.updated_at = _utc_now()
                    session.add(user)
        except DBAPIError as exc:
            raise _storage_error(exc) from exc

        logger.info("seat_released", company_id=company_id, user_id=user_id)
        await self._refresh_counter(company_id)
        return user

    # --- transactional units (run under the tenant lock, retried) ---

    async def _bind(self, company_id: str, user_id: str, role: str | None) -> User:
        try:
            async with AsyncSession(self._engine, expire_on_commit=False) as session:
                async with session.begin():
                    company = await _lock_company(session, company_id)
                    user = await session.get(User, user_id)
                    if user is None or not user.is_active:
                        raise NotFound("User not found")
                    # A user owned by another tenant is reported like a missing one
                    if user.company_id not in (None, company_id):
                        raise NotFound("User not found")

                    target_role = Role(role or user.role)
                    joining = user.company_id is None
                    if joining or role_class_for(user.role) is not role_class_for(target_role):
                        await _check_capacity(session, company, role_class_for(target_role))

                    user.company_id = company_id
                    user.role = target_role.value
                    user.updated_at = _utc_now()
                    session.add(user)
            return user
        except DBAPIError as exc:
            raise _storage_error(exc) from exc

    async def _accept(self, token: str, email: str, first_name: str, last_name: str) -> User:
        expired = False
        try:
            async with AsyncSession(self._engine, expire_on_commit=False) as session:
                async with session.begin():
                    stmt = select(Invitation).where(col(Invitation.token) == token)
                    invitation = (await session.execute(stmt)).scalars().first()
                    if invitation is None:
                        raise InvitationInvalid("unknown token")
                    company = await _lock_company(session, invitation.company_id)
                    # Re-read under the company lock so a concurrent acceptance is visible
                    await session.refresh(invitation)

                    status = effective_status(invitation, _utc_now())
                    if status is InvitationStatus.EXPIRED and (
                        invitation.status == InvitationStatus.PENDING
                    ):
                        invitation.status = InvitationStatus.EXPIRED.value
                        invitation.updated_at = _utc_now()
                        session.add(invitation)
                        expired = True
                    else:
                        user = await self._accept_pending(
                            session, company, invitation, status, email, first_name, last_name
                        )
        except DBAPIError as exc:
            raise _storage_error(exc) from exc

        if expired:
            logger.info("invitation_expired_on_accept", invitation_id=invitation.id)
            raise InvitationInvalid("expired")
        return user

    async def _accept_pending(
        self,
        session: AsyncSession,
        company: Company,
        invitation: Invitation,
        status: InvitationStatus,
        email: str,
        first_name: str,
        last_name: str,
    ) -> User:
        if status is not InvitationStatus.PENDING:
            raise InvitationInvalid(str(status))
        if invitation.email.lower() != email.lower():
            raise InvitationInvalid("email does not match invitation")

        stmt = select(User).where(func.lower(col(User.email)) == invitation.email.lower())
        user = (await session.execute(stmt)).scalars().first()
        if user is not None and user.company_id not in (None, company.id):
            raise InvitationInvalid("email is registered with another company")

        # Joining, or moving to the other seat pool, needs a free seat there
        target_class = role_class_for(invitation.role)
        joining = user is None or user.company_id is None
        if joining or role_class_for(user.role) is not target_class:  # type: ignore[union-attr]
            await _check_capacity(session, company, target_class)

        now = _utc_now()
        if user is None:
            user = User(
                email=invitation.email,
                first_name=first_name,
                last_name=last_name,
                role=Role(invitation.role).value,
                company_id=company.id,
            )
        else:
            user.company_id = company.id
            user.role = Role(invitation.role).value
            user.updated_at = now
        session.add(user)

        invitation.status = InvitationStatus.ACCEPTED.value
        invitation.updated_at = now
        session.add(invitation)
        return user

    async def _refresh_counter(self, company_id: str) -> None:
        """Best-effort refresh of the cached display counter."""
        try:
            await self._ledger.recompute_used_licenses(company_id)
        except SQLAlchemyError:
            # Display cache only; the next admission re-derives the live count
            logger.warning("used_licenses_refresh_failed", company_id=company_id, exc_info=True)
