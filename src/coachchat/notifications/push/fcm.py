"""Web push through Firebase Cloud Messaging (HTTP v1 API).

Authentication uses a Google service account: a short-lived RS256 assertion
is exchanged for an OAuth2 access token, which is cached until shortly
before it expires.
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Any

import httpx
import jwt
import structlog

from coachchat.config import Settings
from coachchat.notifications.errors import DeliveryError, PushConfigurationError
from coachchat.notifications.push.base import BasePushProvider
from coachchat.notifications.types import NotificationPayload

logger = structlog.get_logger()

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
_ASSERTION_LIFETIME_SECONDS = 3600
_TOKEN_REFRESH_MARGIN_SECONDS = 60


def load_service_account(settings: Settings) -> dict[str, Any] | None:
    """Service account from inline JSON or a file path. None if neither is set."""
    if settings.fcm_service_account_json:
        return json.loads(settings.fcm_service_account_json)
    if settings.fcm_service_account_file:
        path = Path(settings.fcm_service_account_file)
        if not path.exists():
            msg = f"FCM service account file not found: {path}"
            raise PushConfigurationError(msg)
        return json.loads(path.read_text(encoding="utf-8"))
    return None


def _stringify_data(data: dict[str, Any]) -> dict[str, str]:
    """FCM data values must be strings; None values are dropped."""
    out: dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        out[key] = value if isinstance(value, str) else json.dumps(value)
    return out


def build_fcm_message(token: str, payload: NotificationPayload) -> dict[str, Any]:
    web_notification: dict[str, Any] = {"title": payload.title, "body": payload.body}
    if payload.icon:
        web_notification["icon"] = payload.icon
    if payload.badge:
        web_notification["badge"] = payload.badge
    if payload.actions:
        web_notification["actions"] = [a.as_dict() for a in payload.actions]

    data = _stringify_data(payload.data)
    return {
        "token": token,
        "notification": {"title": payload.title, "body": payload.body},
        "data": data,
        "webpush": {"notification": web_notification, "data": data},
    }


class FCMWebPushProvider(BasePushProvider):
    """Send web push notifications via FCM."""

    name = "fcm"

    def __init__(
        self,
        project_id: str,
        service_account: dict[str, Any] | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.project_id = project_id or (service_account or {}).get("project_id", "")
        self.service_account = service_account
        self.timeout = timeout
        self._transport = transport
        self._access_token: tuple[str, float] | None = None
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> FCMWebPushProvider:
        return cls(
            project_id=settings.fcm_project_id,
            service_account=load_service_account(settings),
            timeout=settings.push_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id and self.service_account)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _build_assertion(self, now: float) -> str:
        account = self.service_account or {}
        claims = {
            "iss": account["client_email"],
            "scope": FCM_SCOPE,
            "aud": account.get("token_uri", GOOGLE_TOKEN_URI),
            "iat": int(now),
            "exp": int(now) + _ASSERTION_LIFETIME_SECONDS,
        }
        headers = {"kid": account["private_key_id"]} if account.get("private_key_id") else None
        return jwt.encode(claims, account["private_key"], algorithm="RS256", headers=headers)

    async def _get_access_token(self) -> str:
        async with self._token_lock:
            now = time.time()
            if self._access_token and self._access_token[1] > now:
                return self._access_token[0]

            token_uri = (self.service_account or {}).get("token_uri", GOOGLE_TOKEN_URI)
            async with self._client() as client:
                response = await client.post(
                    token_uri,
                    data={
                        "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                        "assertion": self._build_assertion(now),
                    },
                )
            if response.status_code != 200:
                msg = f"FCM auth failed: {response.status_code} {response.text}"
                raise DeliveryError(msg)

            body = response.json()
            expires_in = int(body.get("expires_in", _ASSERTION_LIFETIME_SECONDS))
            self._access_token = (body["access_token"], now + expires_in - _TOKEN_REFRESH_MARGIN_SECONDS)
            return body["access_token"]

    async def send(self, token: str, payload: NotificationPayload) -> None:
        if not self.is_configured:
            msg = "FCM is not configured (project id / service account missing)"
            raise PushConfigurationError(msg)

        try:
            access_token = await self._get_access_token()
            async with self._client() as client:
                response = await client.post(
                    FCM_SEND_URL.format(project_id=self.project_id),
                    headers={"Authorization": f"Bearer {access_token}"},
                    json={"message": build_fcm_message(token, payload)},
                )
        except httpx.HTTPError as exc:
            raise DeliveryError(f"FCM request failed: {exc}") from exc

        if response.status_code != 200:
            msg = f"FCM send failed: {response.status_code} {response.text}"
            raise DeliveryError(msg)
        logger.debug("fcm_push_sent", token_prefix=token[:12])
