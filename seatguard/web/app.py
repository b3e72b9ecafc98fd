"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from seatguard.config.logging import setup_logging
from seatguard.config.settings import get_settings
from seatguard.web.dependencies import get_db_engine
from seatguard.web.errors import register_exception_handlers
from seatguard.web.health import VERSION, check_health
from seatguard.web.middleware import RequestIDMiddleware
from seatguard.web.routes.auth import router as auth_router
from seatguard.web.routes.clients import router as clients_router
from seatguard.web.routes.equipment import router as equipment_router
from seatguard.web.routes.invitations import router as invitations_router
from seatguard.web.routes.seats import router as seats_router
from seatguard.web.routes.users import router as users_router

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="SeatGuard",
        description="Tenant isolation and seat-licensed admission for maintenance teams",
        version=VERSION,
    )
    register_exception_handlers(app)

    # Middleware (order matters, last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Health check (public)
    @app.get("/api/health")
    async def health_check(engine: AsyncEngine = Depends(get_db_engine)) -> dict[str, object]:
        return await check_health(engine)

    # Each router resolves its own TenantContext; invitation acceptance is public
    for router in (
        auth_router,
        invitations_router,
        users_router,
        seats_router,
        equipment_router,
        clients_router,
    ):
        app.include_router(router)

    logger.info("app_created")
    return app
