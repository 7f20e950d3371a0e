"""Mobile push (iOS and Android) through the Expo push service."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from coachchat.config import Settings
from coachchat.notifications.errors import DeliveryError
from coachchat.notifications.push.base import BasePushProvider
from coachchat.notifications.types import NotificationPayload

logger = structlog.get_logger()

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


def build_expo_message(token: str, payload: NotificationPayload) -> dict[str, Any]:
    return {
        "to": token,
        "title": payload.title,
        "body": payload.body,
        "data": payload.data,
        "sound": "default",
        "badge": 1,
    }


class ExpoPushProvider(BasePushProvider):
    """Send push notifications via the Expo push API.

    Expo accepts unauthenticated requests; an access token is sent only when
    the project has enhanced push security enabled.
    """

    name = "expo"

    def __init__(
        self,
        url: str = EXPO_PUSH_URL,
        access_token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> ExpoPushProvider:
        return cls(
            url=settings.expo_push_url,
            access_token=settings.expo_access_token,
            timeout=settings.push_timeout_seconds,
        )

    async def send(self, token: str, payload: NotificationPayload) -> None:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, headers=headers, json=build_expo_message(token, payload))
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Expo request failed: {exc}") from exc

        if not response.is_success:
            msg = f"Expo push failed: {response.status_code} {response.text}"
            raise DeliveryError(msg)

        # A 200 can still carry a per-message error ticket
        try:
            ticket = response.json().get("data")
        except ValueError:
            ticket = None
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else None
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            details = ticket.get("details") or {}
            reason = ticket.get("message") or details.get("error") or "unknown error"
            msg = f"Expo push failed: {reason}"
            raise DeliveryError(msg)
        logger.debug("expo_push_sent", token_prefix=token[:24])
