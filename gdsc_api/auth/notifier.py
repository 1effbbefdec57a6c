"""
GDSC API - Verification Email Delivery

Email delivery is an external collaborator: the auth service hands it a
recipient and a verification token and does not care how the mail leaves.

- LoggingNotifier: development default, records that a mail would be sent
- ResendNotifier: sends through the Resend REST API
"""

import logging
from typing import Optional, Protocol
from urllib.parse import urlencode

import httpx

from gdsc_api.config import Settings

LOGGER = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class NotificationError(Exception):
    """Raised when a verification email could not be handed off."""
    pass


class EmailNotifier(Protocol):
    async def send_verification(self, recipient: str, token: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that only logs. The token itself is never written out."""

    async def send_verification(self, recipient: str, token: str) -> None:
        LOGGER.info("Verification email queued for delivery (no mail provider configured)")


class ResendNotifier:
    """Deliver verification links through Resend."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        verify_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.verify_url = verify_url
        self._transport = transport

    def _link(self, token: str) -> str:
        return f"{self.verify_url}?{urlencode({'token': token})}"

    async def send_verification(self, recipient: str, token: str) -> None:
        body = {
            "from": self.sender,
            "to": [recipient],
            "subject": "Verify your email",
            "html": f'<a href="{self._link(token)}">Verify your email</a>',
        }
        try:
            async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
                resp = await client.post(
                    RESEND_API_URL,
                    json=body,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            raise NotificationError(type(e).__name__) from e

        if resp.status_code >= 300:
            raise NotificationError(f"mail provider returned {resp.status_code}")


def build_notifier(settings: Settings) -> EmailNotifier:
    """Pick the notifier for this deployment."""
    if settings.RESEND_API_KEY:
        return ResendNotifier(
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            verify_url=settings.VERIFY_EMAIL_URL,
        )
    return LoggingNotifier()
