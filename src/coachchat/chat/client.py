"""Chat transport client with a backend abstraction.

Only the Stream Chat REST backend is implemented. Requests are authenticated
with a server-side HS256 token signed by the API secret.
"""

from __future__ import annotations

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
import jwt
import structlog

from coachchat.chat.channels import CHANNEL_TYPE, channel_id_for
from coachchat.config import Settings

logger = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ChatTransportError(Exception):
    """The chat backend rejected a request or could not be reached."""


@dataclass(frozen=True)
class ChatMessage:
    id: str
    text: str
    user_id: str
    user_name: str
    created_at: datetime | None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ChatMessage:
        user = raw.get("user") or {}
        created = raw.get("created_at")
        return cls(
            id=raw["id"],
            text=raw.get("text") or "",
            user_id=user.get("id", ""),
            user_name=user.get("name") or user.get("id", ""),
            created_at=datetime.fromisoformat(created.replace("Z", "+00:00")) if created else None,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "user": {"id": self.user_id, "name": self.user_name},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def sort_by_created_at(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Oldest first. Messages without a server timestamp sort to the front."""
    return sorted(messages, key=lambda m: m.created_at or _EPOCH)


class BaseChatTransport(ABC):
    """Abstract chat backend."""

    @abstractmethod
    async def get_or_create_channel(self, student_id: str, coach_id: str, created_by_id: str) -> str:
        """Ensure the pair's channel exists; return its id."""
        ...

    @abstractmethod
    async def send_message(self, channel_id: str, user_id: str, text: str) -> ChatMessage:
        ...

    @abstractmethod
    async def get_messages(self, channel_id: str, limit: int = 50) -> list[ChatMessage]:
        """Channel history, oldest first."""
        ...

    @abstractmethod
    def create_user_token(self, user_id: str) -> str:
        """Token the client SDK uses to connect as ``user_id``."""
        ...

    @abstractmethod
    def verify_webhook(self, body: bytes, signature: str | None) -> bool:
        ...


class StreamChatClient(BaseChatTransport):
    """Stream Chat over its REST API."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://chat.stream-io-api.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> StreamChatClient:
        return cls(
            api_key=settings.stream_api_key,
            api_secret=settings.stream_api_secret,
            base_url=settings.stream_base_url,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _server_token(self) -> str:
        return jwt.encode({"server": True}, self.api_secret, algorithm="HS256")

    def create_user_token(self, user_id: str) -> str:
        if not self.is_configured:
            msg = "Stream Chat is not configured"
            raise ChatTransportError(msg)
        return jwt.encode({"user_id": user_id}, self.api_secret, algorithm="HS256")

    def verify_webhook(self, body: bytes, signature: str | None) -> bool:
        """Check the hex HMAC-SHA256 of the raw body against the signature header."""
        if not signature or not self.api_secret:
            return False
        expected = hmac.new(self.api_secret.encode(), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.is_configured:
            msg = "Stream Chat is not configured"
            raise ChatTransportError(msg)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    path,
                    params={"api_key": self.api_key},
                    headers={"Authorization": self._server_token(), "stream-auth-type": "jwt"},
                    json=json,
                )
        except httpx.HTTPError as exc:
            raise ChatTransportError(str(exc)) from exc

        if not response.is_success:
            logger.warning("chat_request_failed", path=path, status=response.status_code)
            msg = f"{response.status_code} {response.text}"
            raise ChatTransportError(msg)
        return response.json()

    async def get_or_create_channel(self, student_id: str, coach_id: str, created_by_id: str) -> str:
        channel_id = channel_id_for(student_id, coach_id)
        await self._request(
            "POST",
            f"/channels/{CHANNEL_TYPE}/{channel_id}/query",
            json={
                "data": {"members": [student_id, coach_id], "created_by_id": created_by_id},
                "state": False,
            },
        )
        logger.info("chat_channel_ready", channel_id=channel_id)
        return channel_id

    async def send_message(self, channel_id: str, user_id: str, text: str) -> ChatMessage:
        body = await self._request(
            "POST",
            f"/channels/{CHANNEL_TYPE}/{channel_id}/message",
            json={"message": {"text": text, "user_id": user_id}},
        )
        return ChatMessage.from_api(body["message"])

    async def get_messages(self, channel_id: str, limit: int = 50) -> list[ChatMessage]:
        body = await self._request(
            "POST",
            f"/channels/{CHANNEL_TYPE}/{channel_id}/query",
            json={"state": True, "messages": {"limit": limit}},
        )
        messages = [ChatMessage.from_api(raw) for raw in body.get("messages") or []]
        return sort_by_created_at(messages)
