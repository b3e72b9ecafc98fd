"""Tenant-scoped repository for rows that carry a ``company_id``.

Every get, update and delete passes through the role gate and then the
scoping guard; every list is filtered by tenant. Rows that nest under a
client company are checked at both levels of the ownership chain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog
from sqlmodel import SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from seatguard.exceptions import NotFound
from seatguard.models.database import ClientCompany, _utc_now
from seatguard.tenancy import roles
from seatguard.tenancy.scoping import authorize_chain, enforce, is_platform_admin, require_access
from seatguard.types import Action

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from seatguard.tenancy.context import TenantContext
    from seatguard.types import ResourceType

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

# Columns callers may never rewrite through update()
_IMMUTABLE_FIELDS = frozenset({"id", "company_id", "created_at"})


class TenantScopedRepository(Generic[ModelT]):
    """CRUD over one tenant-owned model with isolation enforced on every call."""

    def __init__(
        self, engine: AsyncEngine, model: type[ModelT], resource_type: ResourceType
    ) -> None:
        self._engine = engine
        self._model = model
        self._resource_type = resource_type
        self._nested = "client_company_id" in model.model_fields
        self._label = f"{resource_type.replace('_', ' ').capitalize()} not found"

    async def get(self, context: TenantContext, resource_id: str) -> ModelT:
        roles.require(context, Action.READ, self._resource_type)
        async with AsyncSession(self._engine) as session:
            return await self._load(session, context, resource_id)

    async def list(
        self,
        context: TenantContext,
        company_id: str | None = None,
        client_company_id: str | None = None,
    ) -> list[ModelT]:
        """List rows of the caller's tenant.

        Platform admins may pass ``company_id`` (or nothing, for every
        tenant); anyone else asking for a foreign tenant gets NotFound.
        """
        roles.require(context, Action.READ, self._resource_type)
        if is_platform_admin(context):
            scope = company_id
        else:
            scope = company_id or context.company_id
            require_access(context, scope, self._label)

        async with AsyncSession(self._engine) as session:
            stmt = select(self._model)
            if scope is not None:
                stmt = stmt.where(col(self._model.company_id) == scope)  # type: ignore[attr-defined]
            if client_company_id is not None:
                await self._check_client_company(session, context, scope, client_company_id)
                stmt = stmt.where(
                    col(self._model.client_company_id) == client_company_id  # type: ignore[attr-defined]
                )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create(self, context: TenantContext, **values: Any) -> ModelT:
        roles.require(context, Action.CREATE, self._resource_type)
        company_id = values.pop("company_id", None) or context.company_id
        require_access(context, company_id, "Company not found")

        async with AsyncSession(self._engine) as session:
            if self._nested and values.get("client_company_id"):
                await self._check_client_company(
                    session, context, company_id, values["client_company_id"]
                )
            row = self._model(company_id=company_id, **values)
            session.add(row)
            await session.commit()
            await session.refresh(row)
        logger.info(
            "tenant_resource_created",
            resource_type=str(self._resource_type),
            resource_id=row.id,  # type: ignore[attr-defined]
            company_id=company_id,
        )
        return row

    async def update(self, context: TenantContext, resource_id: str, **values: Any) -> ModelT:
        roles.require(context, Action.UPDATE, self._resource_type)
        async with AsyncSession(self._engine) as session:
            row = await self._load(session, context, resource_id)
            if self._nested and values.get("client_company_id"):
                await self._check_client_company(
                    session,
                    context,
                    row.company_id,  # type: ignore[attr-defined]
                    values["client_company_id"],
                )
            for key, value in values.items():
                if key in _IMMUTABLE_FIELDS or key not in self._model.model_fields:
                    continue
                setattr(row, key, value)
            if "updated_at" in self._model.model_fields:
                row.updated_at = _utc_now()  # type: ignore[attr-defined]
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    async def delete(self, context: TenantContext, resource_id: str) -> None:
        roles.require(context, Action.DELETE, self._resource_type)
        async with AsyncSession(self._engine) as session:
            row = await self._load(session, context, resource_id)
            await session.delete(row)
            await session.commit()
        logger.info(
            "tenant_resource_deleted",
            resource_type=str(self._resource_type),
            resource_id=resource_id,
            company_id=context.company_id,
        )

    async def _load(self, session: AsyncSession, context: TenantContext, resource_id: str) -> ModelT:
        row = await session.get(self._model, resource_id)
        # Missing and foreign rows raise the same NotFound
        if row is None:
            raise NotFound(self._label)

        client_company_id = getattr(row, "client_company_id", None)
        client_tenant_id = None
        if client_company_id is not None:
            client = await session.get(ClientCompany, client_company_id)
            client_tenant_id = client.company_id if client else None

        decision = authorize_chain(
            context,
            row.company_id,  # type: ignore[attr-defined]
            client_tenant_id,
            has_client_company=client_company_id is not None,
        )
        enforce(decision, self._label)
        return row

    async def _check_client_company(
        self,
        session: AsyncSession,
        context: TenantContext,
        company_id: str | None,
        client_company_id: str,
    ) -> None:
        """A referenced client company must belong to the same tenant as the row."""
        client = await session.get(ClientCompany, client_company_id)
        if client is None or (company_id is not None and client.company_id != company_id):
            raise NotFound("Client company not found")
        require_access(context, client.company_id, "Client company not found")
