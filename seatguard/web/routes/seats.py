"""Seat usage display for the billing page."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from seatguard.exceptions import NotFound
from seatguard.models.api import SeatsResponse
from seatguard.tenancy import roles
from seatguard.tenancy.context import TenantContext
from seatguard.tenancy.ledger import LicenseLedger
from seatguard.tenancy.scoping import require_access
from seatguard.types import Action, ResourceType
from seatguard.web.auth.rbac import get_principal_context
from seatguard.web.dependencies import get_ledger

router = APIRouter(prefix="/api/seats", tags=["seats"])


@router.get("", response_model=SeatsResponse)
async def seat_breakdown(
    company_id: str | None = None,
    context: TenantContext = Depends(get_principal_context),
    ledger: LicenseLedger = Depends(get_ledger),
) -> Any:
    roles.require(context, Action.READ, ResourceType.BILLING)
    scope = company_id or context.company_id
    require_access(context, scope, "Company not found")
    if scope is None:
        raise NotFound("Company not found")

    breakdown = await ledger.breakdown(scope)
    return {"company_id": scope, **breakdown.as_dict()}
