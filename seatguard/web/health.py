"""Readiness probe for the tenancy database."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

VERSION = "0.1.0"


async def check_health(engine: AsyncEngine) -> dict[str, object]:
    """Probe the database that admission and scoping depend on.

    Returns ``degraded`` instead of raising, so load balancers get a body
    even while the database is unreachable.
    """
    started = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("health_check_db_failed", dialect=engine.dialect.name, error=str(exc))
        return {"status": "degraded", "version": VERSION, "database": "unavailable"}

    return {
        "status": "healthy",
        "version": VERSION,
        "database": "connected",
        "dialect": engine.dialect.name,
        "latency_ms": round((time.perf_counter() - started) * 1000, 1),
    }
