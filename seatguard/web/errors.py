"""Translate domain exceptions into HTTP responses."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi.responses import JSONResponse

from seatguard.exceptions import (
    InsufficientRole,
    InvitationConflict,
    InvitationInvalid,
    LicenseLimitReached,
    NoTenantAssigned,
    NotFound,
    StorageError,
    TransientStorageError,
    Unauthenticated,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = structlog.get_logger(__name__)

UPGRADE_URL = "/billing"
ONBOARDING_URL = "/onboarding"


async def _unauthenticated(request: Request, exc: Unauthenticated) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": str(exc)})


async def _no_tenant(request: Request, exc: NoTenantAssigned) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={"detail": str(exc), "code": "NO_COMPANY", "redirect": ONBOARDING_URL},
    )


async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Not found"})


async def _insufficient_role(request: Request, exc: InsufficientRole) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc), "code": "FORBIDDEN"})


async def _license_limit(request: Request, exc: LicenseLimitReached) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={
            "detail": str(exc),
            "code": "LICENSE_LIMIT_REACHED",
            "role_class": exc.role_class,
            "used": exc.used,
            "purchased": exc.purchased,
            "upgrade_url": UPGRADE_URL,
        },
    )


async def _invitation_invalid(request: Request, exc: InvitationInvalid) -> JSONResponse:
    return JSONResponse(
        status_code=400, content={"detail": str(exc), "reason": exc.reason}
    )


async def _invitation_conflict(request: Request, exc: InvitationConflict) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _transient_storage(request: Request, exc: TransientStorageError) -> JSONResponse:
    logger.warning("transient_storage_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={"detail": "Service busy, please retry"},
        headers={"Retry-After": "1"},
    )


async def _storage(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("storage_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Internal storage error"})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach a handler for each domain exception to ``app``."""
    app.add_exception_handler(Unauthenticated, _unauthenticated)  # type: ignore[arg-type]
    app.add_exception_handler(NoTenantAssigned, _no_tenant)  # type: ignore[arg-type]
    app.add_exception_handler(NotFound, _not_found)  # type: ignore[arg-type]
    app.add_exception_handler(InsufficientRole, _insufficient_role)  # type: ignore[arg-type]
    app.add_exception_handler(LicenseLimitReached, _license_limit)  # type: ignore[arg-type]
    app.add_exception_handler(InvitationInvalid, _invitation_invalid)  # type: ignore[arg-type]
    app.add_exception_handler(InvitationConflict, _invitation_conflict)  # type: ignore[arg-type]
    app.add_exception_handler(TransientStorageError, _transient_storage)  # type: ignore[arg-type]
    app.add_exception_handler(StorageError, _storage)  # type: ignore[arg-type]
