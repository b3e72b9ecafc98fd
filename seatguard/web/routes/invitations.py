"""Invitation routes: create, list, revoke, look up and accept."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Response

from seatguard.config.settings import get_settings
from seatguard.models.api import (
    AcceptResponse,
    InvitationAccept,
    InvitationCreate,
    InvitationResponse,
)
from seatguard.tenancy.context import TenantContext
from seatguard.tenancy.invitations import InvitationService
from seatguard.web.auth.rbac import get_principal_context
from seatguard.web.auth.session import SessionAuth
from seatguard.web.dependencies import get_identity, get_invitation_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


@router.post("", status_code=201, response_model=InvitationResponse)
async def create_invitation(
    body: InvitationCreate,
    context: TenantContext = Depends(get_principal_context),
    service: InvitationService = Depends(get_invitation_service),
) -> Any:
    return await service.create(context, body.email, body.role, company_id=body.company_id)


@router.get("", response_model=list[InvitationResponse])
async def list_invitations(
    company_id: str | None = None,
    context: TenantContext = Depends(get_principal_context),
    service: InvitationService = Depends(get_invitation_service),
) -> Any:
    return await service.list_invitations(context, company_id=company_id)


@router.delete("/{invitation_id}", response_model=InvitationResponse)
async def revoke_invitation(
    invitation_id: str,
    context: TenantContext = Depends(get_principal_context),
    service: InvitationService = Depends(get_invitation_service),
) -> Any:
    return await service.revoke(context, invitation_id)


@router.get("/token/{token}")
async def lookup_invitation(
    token: str,
    service: InvitationService = Depends(get_invitation_service),
) -> dict[str, Any]:
    """Public lookup used by the sign-up page before acceptance."""
    invitation = await service.get_by_token(token)
    return {
        "email": invitation.email,
        "role": invitation.role,
        "status": invitation.status,
        "expires_at": invitation.expires_at.isoformat(),
    }


@router.post("/accept", response_model=AcceptResponse)
async def accept_invitation(
    body: InvitationAccept,
    response: Response,
    service: InvitationService = Depends(get_invitation_service),
    identity: SessionAuth = Depends(get_identity),
) -> Any:
    """Accept an invitation and start a session for the new member."""
    user = await service.accept(body.token, body.email, body.first_name, body.last_name)
    token = identity.create_session(user.id)

    settings = get_settings()
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.session_max_age,
    )
    return {"user": user, "session_token": token}
