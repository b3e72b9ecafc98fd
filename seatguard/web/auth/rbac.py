"""Tenant context dependencies for authenticated requests."""

from __future__ import annotations

import structlog
from fastapi import Depends, Request

from seatguard.tenancy.context import TenantContext, TenantContextLoader
from seatguard.web.dependencies import get_context_loader


def session_token(request: Request) -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get("session")


def _bind_log_context(context: TenantContext) -> None:
    structlog.contextvars.bind_contextvars(
        user_id=context.user_id, company_id=context.company_id
    )


async def get_tenant(
    request: Request,
    loader: TenantContextLoader = Depends(get_context_loader),
) -> TenantContext:
    """Resolve the caller's TenantContext; a company assignment is required."""
    context = await loader.load(session_token(request))
    _bind_log_context(context)
    return context


async def get_principal_context(
    request: Request,
    loader: TenantContextLoader = Depends(get_context_loader),
) -> TenantContext:
    """Resolve the caller without requiring a company (onboarding, platform routes)."""
    context = await loader.load(session_token(request), require_company=False)
    _bind_log_context(context)
    return context

