"""Async database engine and classification of retryable storage errors."""

from functools import lru_cache
from typing import Any

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from seatguard.config.settings import get_settings

# SQLSTATE codes PostgreSQL uses for retryable transaction conflicts
_SERIALIZATION_FAILURE = "40001"
_DEADLOCK_DETECTED = "40P01"


@lru_cache
def get_engine() -> AsyncEngine:
    """Return the process-wide engine; the schema itself is managed by Alembic."""
    settings = get_settings()
    options: dict[str, Any] = {"echo": settings.debug}
    if not settings.database_url.startswith("sqlite"):
        # Admission holds a row lock per tenant, so keep enough connections for bursts
        options.update(pool_size=10, max_overflow=20, pool_pre_ping=True, pool_recycle=1800)
    return create_async_engine(settings.database_url, **options)


def is_transient(exc: DBAPIError) -> bool:
    """Return True for transaction conflicts that succeed when retried."""
    if exc.connection_invalidated:
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in (_SERIALIZATION_FAILURE, _DEADLOCK_DETECTED):
        return True
    # SQLite reports writer contention only through the message
    return "database is locked" in str(orig).lower()
