"""Signed session tokens; the identity provider behind TenantContextLoader."""

from __future__ import annotations

import hashlib
import hmac
import time
from functools import lru_cache
from typing import Any

import structlog

from seatguard.config.settings import get_settings

logger = structlog.get_logger(__name__)


class SessionAuth:
    """Stateless HMAC-signed session tokens of the form ``user_id.issued_at.signature``.

    Tokens survive restarts and work across worker processes. Logging out
    revokes a token for the lifetime of this process only.
    """

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self._secret = secret_key.encode()
        self._max_age = max_age
        self._revoked: set[str] = set()

    def create_session(self, user_id: str) -> str:
        """Create a new session and return the token."""
        payload = f"{user_id}.{int(time.time())}"
        logger.info("session_created", user_id=user_id)
        return f"{payload}.{self._sign(payload)}"

    def validate_session(self, token: str) -> dict[str, Any] | None:
        """Validate a session token and return its data."""
        if not token or token.count(".") != 2 or token in self._revoked:
            return None

        payload, signature = token.rsplit(".", 1)
        if not hmac.compare_digest(signature, self._sign(payload)):
            return None

        user_id, issued_at = payload.split(".", 1)
        try:
            created_at = int(issued_at)
        except ValueError:
            return None

        # Check expiry
        if time.time() - created_at > self._max_age:
            return None

        return {"user_id": user_id, "created_at": created_at}

    def resolve_principal(self, token: str) -> str | None:
        session = self.validate_session(token)
        return session["user_id"] if session else None

    def destroy_session(self, token: str) -> None:
        """Revoke a session."""
        self._revoked.add(token)
        logger.info("session_destroyed")

    def _sign(self, data: str) -> str:
        """Create HMAC signature for a token."""
        return hmac.new(self._secret, data.encode(), hashlib.sha256).hexdigest()[:32]


@lru_cache
def get_session_auth() -> SessionAuth:
    """Return the process-wide SessionAuth built from settings."""
    settings = get_settings()
    return SessionAuth(settings.secret_key, max_age=settings.session_max_age)
