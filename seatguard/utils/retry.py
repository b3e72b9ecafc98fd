"""Bounded retry for transient storage failures (serialization, deadlock)."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import structlog

from seatguard.exceptions import TransientStorageError

logger = structlog.get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def backoff_seconds(
    attempt: int, delay_ms: int, backoff_factor: float = 2.0, max_delay_ms: int = 1000
) -> float:
    """Wait before the retry that follows failed ``attempt`` (1-based)."""
    return min(delay_ms * backoff_factor ** (attempt - 1), max_delay_ms) / 1000


def retry(
    max_attempts: int = 3,
    delay_ms: int = 50,
    backoff_factor: float = 2.0,
    max_delay_ms: int = 1000,
    retry_on: tuple[type[Exception], ...] = (TransientStorageError,),
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry an async operation while it fails with one of ``retry_on``.

    Anything else, authorization and admission refusals included, propagates
    on the first attempt. The last transient error is re-raised once
    ``max_attempts`` is used up.
    """
    if max_attempts < 1:
        msg = "max_attempts must be at least 1"
        raise ValueError(msg)

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if attempt >= max_attempts:
                        logger.warning(
                            "retry_exhausted",
                            operation=func.__qualname__,
                            attempts=attempt,
                            error=str(exc),
                        )
                        raise
                    wait = backoff_seconds(attempt, delay_ms, backoff_factor, max_delay_ms)
                    logger.info(
                        "transient_failure_retrying",
                        operation=func.__qualname__,
                        attempt=attempt,
                        wait_seconds=wait,
                        error=str(exc),
                    )
                    await asyncio.sleep(wait)
                    attempt += 1

        return wrapper

    return decorator
