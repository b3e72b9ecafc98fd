"""Invitation email delivery."""

from __future__ import annotations

from abc import ABC, abstractmethod
from html import escape
from typing import Any

import httpx
import structlog

from seatguard.types import DeliveryStatus

logger = structlog.get_logger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"


class InvitationNotifier(ABC):
    """Abstract base for invitation delivery channels."""

    @abstractmethod
    async def send_invitation(
        self, email: str, link: str, metadata: dict[str, Any]
    ) -> DeliveryStatus:
        """Deliver an invitation link to ``email``."""


class ResendNotifier(InvitationNotifier):
    """Sends invitation emails through the Resend HTTP API.

    Without an API key every send is skipped, which keeps local development
    and tests free of outbound calls.
    """

    def __init__(
        self,
        api_key: str | None,
        from_email: str,
        api_url: str = _RESEND_API_URL,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._api_url = api_url
        self._timeout = timeout

    async def send_invitation(
        self, email: str, link: str, metadata: dict[str, Any]
    ) -> DeliveryStatus:
        if not self._api_key:
            logger.info("invitation_email_skipped", email=email, reason="no_api_key")
            return DeliveryStatus.SKIPPED

        company_name = str(metadata.get("company_name", "your team"))
        inviter = str(metadata.get("inviter_name", "A team member"))
        role = str(metadata.get("role", "technician"))
        ttl_days = metadata.get("expires_in_days", 7)
        payload = {
            "from": self._from_email,
            "to": [email],
            "subject": f"{inviter} invited you to join {company_name}",
            "html": (
                f"<p>{escape(inviter)} invited you to join "
                f"<strong>{escape(company_name)}</strong> as a {escape(role)}.</p>"
                f'<p><a href="{escape(link)}">Accept invitation</a></p>'
                f"<p>This invitation expires in {ttl_days} days.</p>"
            ),
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("invitation_email_failed", email=email, error=str(exc))
            return DeliveryStatus.FAILED

        logger.info("invitation_email_sent", email=email)
        return DeliveryStatus.DELIVERED
