"""Client companies and the deliverables nested under them."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from seatguard.models.api import (
    ClientCompanyCreate,
    ClientCompanyResponse,
    DeliverableCreate,
    DeliverableResponse,
    DeliverableUpdate,
)
from seatguard.models.database import ClientCompany, Deliverable
from seatguard.storage.repositories.scoped import TenantScopedRepository
from seatguard.tenancy.context import TenantContext
from seatguard.types import ResourceType
from seatguard.web.auth.rbac import get_tenant
from seatguard.web.dependencies import scoped_repository

router = APIRouter(prefix="/api", tags=["clients"])

get_client_repo = scoped_repository(ClientCompany, ResourceType.CLIENT_COMPANY)
get_deliverable_repo = scoped_repository(Deliverable, ResourceType.DELIVERABLE)


@router.post("/client-companies", status_code=201, response_model=ClientCompanyResponse)
async def create_client_company(
    body: ClientCompanyCreate,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[ClientCompany] = Depends(get_client_repo),
) -> Any:
    return await repo.create(context, name=body.name, created_by_id=context.user_id)


@router.get("/client-companies", response_model=list[ClientCompanyResponse])
async def list_client_companies(
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[ClientCompany] = Depends(get_client_repo),
) -> Any:
    return await repo.list(context)


@router.post("/deliverables", status_code=201, response_model=DeliverableResponse)
async def create_deliverable(
    body: DeliverableCreate,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Deliverable] = Depends(get_deliverable_repo),
) -> Any:
    return await repo.create(context, **body.model_dump())


@router.get("/deliverables", response_model=list[DeliverableResponse])
async def list_deliverables(
    client_company_id: str | None = None,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Deliverable] = Depends(get_deliverable_repo),
) -> Any:
    return await repo.list(context, client_company_id=client_company_id)


@router.get("/deliverables/{deliverable_id}", response_model=DeliverableResponse)
async def get_deliverable(
    deliverable_id: str,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Deliverable] = Depends(get_deliverable_repo),
) -> Any:
    return await repo.get(context, deliverable_id)


@router.patch("/deliverables/{deliverable_id}", response_model=DeliverableResponse)
async def update_deliverable(
    deliverable_id: str,
    body: DeliverableUpdate,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Deliverable] = Depends(get_deliverable_repo),
) -> Any:
    values = body.model_dump(exclude_none=True)
    if values.get("is_complete"):
        values["completed_by_id"] = context.user_id
    return await repo.update(context, deliverable_id, **values)


@router.delete("/deliverables/{deliverable_id}", status_code=204)
async def delete_deliverable(
    deliverable_id: str,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Deliverable] = Depends(get_deliverable_repo),
) -> Response:
    await repo.delete(context, deliverable_id)
    return Response(status_code=204)
