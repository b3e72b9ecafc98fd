"""Tenant membership routes: list, assign and delete users."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response

from seatguard.exceptions import NotFound
from seatguard.models.api import AssignRequest, BulkDeleteRequest, DeletionResponse, UserResponse
from seatguard.storage.ownership import UserDeletionService
from seatguard.storage.repositories.users import DatabaseUserRepository
from seatguard.tenancy import roles
from seatguard.tenancy.admission import SeatAdmissionController
from seatguard.tenancy.context import TenantContext
from seatguard.tenancy.scoping import is_platform_admin, require_access
from seatguard.types import Action, ResourceType
from seatguard.web.auth.rbac import get_principal_context, get_tenant
from seatguard.web.dependencies import get_admission, get_deletion_service, get_user_repo

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    company_id: str | None = None,
    context: TenantContext = Depends(get_principal_context),
    users: DatabaseUserRepository = Depends(get_user_repo),
) -> Any:
    roles.require(context, Action.READ, ResourceType.USER)
    if is_platform_admin(context) and company_id is None:
        return await users.list_all()
    scope = company_id or context.company_id
    require_access(context, scope, "Company not found")
    return await users.list_by_company(scope)  # type: ignore[arg-type]


@router.post("/{user_id}/assign", response_model=UserResponse)
async def assign_user(
    user_id: str,
    body: AssignRequest,
    context: TenantContext = Depends(get_principal_context),
    admission: SeatAdmissionController = Depends(get_admission),
    users: DatabaseUserRepository = Depends(get_user_repo),
) -> Any:
    """Bind a user to a company.

    Tenant managers go through seat admission and may not grant a role above
    their own. Platform admins move users directly and manage capacity
    themselves.
    """
    if is_platform_admin(context):
        if not body.company_id:
            raise HTTPException(status_code=422, detail="company_id is required")
        return await admission.direct_bind(
            body.company_id, user_id, body.role, reason="platform_admin"
        )

    roles.require(context, Action.UPDATE, ResourceType.USER)
    company_id = body.company_id or context.company_id
    require_access(context, company_id, "Company not found")
    target = await users.get_by_id(user_id)
    # Foreign users are left to admission, which reports them as not found
    if target is not None and target.company_id in (None, company_id):
        current_role = target.role if target.company_id == company_id else None
        roles.require_role_grant(context, body.role or target.role, current_role)
    return await admission.admit(company_id, user_id, body.role)  # type: ignore[arg-type]


@router.post("/{user_id}/release", response_model=UserResponse)
async def release_user(
    user_id: str,
    company_id: str | None = None,
    context: TenantContext = Depends(get_principal_context),
    admission: SeatAdmissionController = Depends(get_admission),
    users: DatabaseUserRepository = Depends(get_user_repo),
) -> Any:
    """Remove a member from the company, freeing their seat."""
    roles.require(context, Action.UPDATE, ResourceType.USER)
    scope = company_id or context.company_id
    require_access(context, scope, "Company not found")
    if scope is None:
        raise NotFound("Company not found")
    if user_id == context.user_id:
        raise HTTPException(status_code=409, detail="cannot remove yourself")
    target = await users.get_by_id(user_id)
    if target is not None and target.company_id == scope:
        roles.require_role_grant(context, target.role, target.role)
    return await admission.release(scope, user_id)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    context: TenantContext = Depends(get_tenant),
    deletion: UserDeletionService = Depends(get_deletion_service),
) -> Response:
    report = await deletion.delete(context, [user_id])
    reason = report.skipped.get(user_id)
    if reason == "not found":
        raise NotFound("User not found")
    if reason:
        raise HTTPException(status_code=409, detail=reason)
    return Response(status_code=204)


@router.post("/bulk-delete", response_model=DeletionResponse)
async def bulk_delete_users(
    body: BulkDeleteRequest,
    context: TenantContext = Depends(get_principal_context),
    deletion: UserDeletionService = Depends(get_deletion_service),
) -> Any:
    report = await deletion.delete(context, body.user_ids)
    return {"deleted": report.deleted, "skipped": report.skipped}
