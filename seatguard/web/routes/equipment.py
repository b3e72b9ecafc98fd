"""Equipment CRUD, scoped to the caller's tenant."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from seatguard.models.api import EquipmentCreate, EquipmentResponse, EquipmentUpdate
from seatguard.models.database import Equipment
from seatguard.storage.repositories.scoped import TenantScopedRepository
from seatguard.tenancy.context import TenantContext
from seatguard.types import ResourceType
from seatguard.web.auth.rbac import get_tenant
from seatguard.web.dependencies import scoped_repository

router = APIRouter(prefix="/api/equipment", tags=["equipment"])

get_equipment_repo = scoped_repository(Equipment, ResourceType.EQUIPMENT)


@router.post("", status_code=201, response_model=EquipmentResponse)
async def create_equipment(
    body: EquipmentCreate,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Equipment] = Depends(get_equipment_repo),
) -> Any:
    return await repo.create(context, **body.model_dump())


@router.get("", response_model=list[EquipmentResponse])
async def list_equipment(
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Equipment] = Depends(get_equipment_repo),
) -> Any:
    return await repo.list(context)


@router.get("/{equipment_id}", response_model=EquipmentResponse)
async def get_equipment(
    equipment_id: str,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Equipment] = Depends(get_equipment_repo),
) -> Any:
    return await repo.get(context, equipment_id)


@router.patch("/{equipment_id}", response_model=EquipmentResponse)
async def update_equipment(
    equipment_id: str,
    body: EquipmentUpdate,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Equipment] = Depends(get_equipment_repo),
) -> Any:
    return await repo.update(context, equipment_id, **body.model_dump(exclude_none=True))


@router.delete("/{equipment_id}", status_code=204)
async def delete_equipment(
    equipment_id: str,
    context: TenantContext = Depends(get_tenant),
    repo: TenantScopedRepository[Equipment] = Depends(get_equipment_repo),
) -> Response:
    await repo.delete(context, equipment_id)
    return Response(status_code=204)
