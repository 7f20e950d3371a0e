"""Chat transport events.

Webhook bodies from the chat backend are normalized into ``ChatMessageEvent``
before anything else looks at them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

MESSAGE_NEW = "message.new"
MESSAGE_UPDATED = "message.updated"
MESSAGE_DELETED = "message.deleted"

MESSAGE_EVENT_TYPES = frozenset({MESSAGE_NEW, MESSAGE_UPDATED, MESSAGE_DELETED})


class ChatSender(BaseModel):
    id: str
    name: str = ""
    image: str | None = None


class ChatEventMessage(BaseModel):
    id: str
    text: str = ""
    sender: ChatSender
    created_at: datetime | None = None


def _member_id(member: Any) -> str | None:
    """Members arrive as plain ids or as member objects (``user_id`` or ``user.id``)."""
    if isinstance(member, str):
        return member
    if isinstance(member, dict):
        return member.get("user_id") or (member.get("user") or {}).get("id")
    msg = f"unsupported channel member entry: {member!r}"
    raise ValueError(msg)


class ChatMessageEvent(BaseModel):
    type: str
    channel_id: str
    message: ChatEventMessage
    member_ids: list[str] = Field(default_factory=list)

    @property
    def is_new_message(self) -> bool:
        return self.type == MESSAGE_NEW

    @classmethod
    def from_webhook(cls, payload: dict[str, Any]) -> ChatMessageEvent:
        """Parse a chat backend webhook body.

        The channel id comes from ``channel_id``, ``channel.id`` or the
        ``type:id`` cid, whichever is present. Raises ``ValueError`` when the
        body is not a message event.
        """
        message = payload.get("message")
        if not isinstance(message, dict):
            msg = "webhook payload has no message"
            raise ValueError(msg)

        channel = payload.get("channel") or {}
        cid = payload.get("cid") or ""
        channel_id = payload.get("channel_id") or channel.get("id") or cid.partition(":")[2] or cid
        if not channel_id:
            msg = "webhook payload has no channel id"
            raise ValueError(msg)

        user = message.get("user") or payload.get("user") or {}
        members = payload.get("members") or []
        if not isinstance(members, list):
            msg = "webhook members must be a list"
            raise ValueError(msg)
        member_ids = [_member_id(m) for m in members]

        return cls(
            type=payload.get("type", ""),
            channel_id=channel_id,
            message=ChatEventMessage(
                id=message["id"],
                text=message.get("text") or "",
                sender=ChatSender(
                    id=user.get("id", ""),
                    name=user.get("name") or user.get("id", ""),
                    image=user.get("image"),
                ),
                created_at=message.get("created_at"),
            ),
            member_ids=[m for m in member_ids if m],
        )
