"""Session routes: current principal and logout."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, Response

from seatguard.tenancy.context import TenantContext
from seatguard.web.auth.rbac import get_principal_context, session_token
from seatguard.web.auth.session import SessionAuth
from seatguard.web.dependencies import get_identity

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me")
async def me(context: TenantContext = Depends(get_principal_context)) -> dict[str, Any]:
    """Return the caller; a null ``company_id`` means onboarding is pending."""
    return {
        "user_id": context.user_id,
        "email": context.email,
        "role": context.role,
        "platform_role": context.platform_role,
        "company_id": context.company_id,
        "needs_onboarding": context.company_id is None,
    }


@router.post("/logout", status_code=204)
async def logout(
    request: Request,
    identity: SessionAuth = Depends(get_identity),
) -> Response:
    token = session_token(request)
    if token:
        identity.destroy_session(token)
    response = Response(status_code=204)
    response.delete_cookie("session")
    return response
