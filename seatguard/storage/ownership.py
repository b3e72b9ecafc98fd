"""Ownership rules for rows that reference a user, and principal deletion.

``USER_OWNERSHIP_RULES`` lists every foreign key pointing at ``users.id``
together with what happens to the referencing rows when that user is
deleted. Single and bulk deletion both run through ``UserDeletionService``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlmodel import SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import NotFound, StorageError
from seatguard.models.database import (
    ClientCompany,
    Deliverable,
    InterviewSession,
    Invitation,
    TrainingProgress,
    User,
    WorkOrder,
)
from seatguard.tenancy import roles
from seatguard.tenancy.ledger import LicenseLedger
from seatguard.tenancy.scoping import authorize
from seatguard.types import Action, OnDelete, ResourceType

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from seatguard.tenancy.context import TenantContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class OwnershipRule:
    """A column of ``model`` referencing ``users.id`` and its delete behaviour."""

    model: type[SQLModel]
    column: str
    on_delete: OnDelete

    @property
    def label(self) -> str:
        return f"{self.model.__tablename__}.{self.column}"  # type: ignore[attr-defined]


USER_OWNERSHIP_RULES: tuple[OwnershipRule, ...] = (
    OwnershipRule(Invitation, "invited_by", OnDelete.SET_NULL),
    OwnershipRule(WorkOrder, "assigned_to_id", OnDelete.SET_NULL),
    OwnershipRule(WorkOrder, "created_by_id", OnDelete.SET_NULL),
    OwnershipRule(WorkOrder, "approved_by_id", OnDelete.SET_NULL),
    OwnershipRule(TrainingProgress, "user_id", OnDelete.CASCADE),
    OwnershipRule(ClientCompany, "created_by_id", OnDelete.SET_NULL),
    OwnershipRule(InterviewSession, "conducted_by_id", OnDelete.SET_NULL),
    OwnershipRule(Deliverable, "completed_by_id", OnDelete.SET_NULL),
)


@dataclass
class DeletionReport:
    """Outcome of a deletion request, one entry per requested user id."""

    deleted: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)


class UserDeletionService:
    """Deletes principals, applying ``USER_OWNERSHIP_RULES`` to what they own."""

    def __init__(
        self,
        engine: AsyncEngine,
        ledger: LicenseLedger | None = None,
        rules: Sequence[OwnershipRule] = USER_OWNERSHIP_RULES,
    ) -> None:
        self._engine = engine
        self._ledger = ledger or LicenseLedger(engine)
        self._rules = tuple(rules)

    async def delete(self, context: TenantContext, user_ids: Iterable[str]) -> DeletionReport:
        """Delete each user in ``user_ids`` in its own transaction.

        Users that cannot be deleted are reported in ``skipped`` with a reason
        instead of failing the whole batch. Deleting a user never touches
        another tenant: foreign ids are skipped as not found.
        """
        roles.require(context, Action.DELETE, ResourceType.USER)

        report = DeletionReport()
        touched: set[str] = set()
        for user_id in dict.fromkeys(user_ids):
            if user_id == context.user_id:
                report.skipped[user_id] = "cannot delete yourself"
                continue
            try:
                company_id = await self._delete_one(context, user_id)
            except NotFound:
                report.skipped[user_id] = "not found"
                continue
            except _Blocked as blocked:
                report.skipped[user_id] = f"referenced by {blocked.label}"
                continue
            report.deleted.append(user_id)
            if company_id:
                touched.add(company_id)

        for company_id in touched:
            try:
                await self._ledger.recompute_used_licenses(company_id)
            except SQLAlchemyError:
                logger.warning("used_licenses_refresh_failed", company_id=company_id, exc_info=True)

        logger.info(
            "users_deleted",
            deleted_by=context.user_id,
            deleted=report.deleted_count,
            skipped=len(report.skipped),
        )
        return report

    async def _delete_one(self, context: TenantContext, user_id: str) -> str | None:
        try:
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    user = await session.get(User, user_id)
                    if user is None or not authorize(context, user.company_id):
                        raise NotFound("User not found")
                    company_id = user.company_id

                    for rule in self._rules:
                        if rule.on_delete is OnDelete.BLOCK and await _references(
                            session, rule, user_id
                        ):
                            raise _Blocked(rule.label)

                    for rule in self._ordered(OnDelete.SET_NULL):
                        column = getattr(rule.model, rule.column)
                        await session.execute(
                            update(rule.model)
                            .where(col(column) == user_id)
                            .values({rule.column: None})
                        )
                    for rule in self._ordered(OnDelete.CASCADE):
                        column = getattr(rule.model, rule.column)
                        await session.execute(delete(rule.model).where(col(column) == user_id))

                    await session.delete(user)
        except DBAPIError as exc:
            raise StorageError(str(exc.orig)) from exc

        logger.info("user_deleted", user_id=user_id, company_id=company_id)
        return company_id

    def _ordered(self, on_delete: OnDelete) -> list[OwnershipRule]:
        return [rule for rule in self._rules if rule.on_delete is on_delete]


class _Blocked(Exception):
    def __init__(self, label: str) -> None:
        super().__init__(label)
        self.label = label


async def _references(session: AsyncSession, rule: OwnershipRule, user_id: str) -> bool:
    column = getattr(rule.model, rule.column)
    stmt = select(func.count()).select_from(rule.model).where(col(column) == user_id)
    return int((await session.execute(stmt)).scalar_one()) > 0
