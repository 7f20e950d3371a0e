"""Notification payload builders.

Pure functions: (kind, data) -> NotificationPayload. ``build_payload`` picks
the builder for a notification type and falls back to a generic payload for
types it does not know.
"""

from __future__ import annotations

from typing import Any

from coachchat.notifications.types import (
    NotificationAction,
    NotificationPayload,
    NotificationType,
)

DEFAULT_ICON = "/icon.png"
DEFAULT_SOUND = "default"

# Chat bodies longer than this are cut and suffixed with "..."
CHAT_BODY_MAX_LENGTH = 100


def truncate_body(text: str, limit: int = CHAT_BODY_MAX_LENGTH) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def build_chat_notification(
    sender_name: str,
    text: str,
    channel_id: str,
    message_id: str,
    sender_id: str,
    icon: str = DEFAULT_ICON,
) -> NotificationPayload:
    return NotificationPayload(
        title=f"New message from {sender_name}",
        body=truncate_body(text),
        data={
            "type": NotificationType.CHAT_MESSAGE.value,
            "channelId": channel_id,
            "messageId": message_id,
            "senderId": sender_id,
        },
        icon=icon,
        badge=icon,
        sound=DEFAULT_SOUND,
        actions=(
            NotificationAction(action="open", title="Open Chat", icon=icon),
            NotificationAction(action="dismiss", title="Dismiss"),
        ),
    )


def build_assignment_notification(
    title: str,
    due_date: str | None = None,
    icon: str = DEFAULT_ICON,
) -> NotificationPayload:
    return NotificationPayload(
        title="New Assignment",
        body=title,
        data={
            "type": NotificationType.ASSIGNMENT.value,
            "dueDate": due_date,
        },
        icon=icon,
        badge=icon,
        sound=DEFAULT_SOUND,
        actions=(NotificationAction(action="view", title="View Assignment"),),
    )


def build_system_notification(
    title: str,
    body: str,
    extra: dict[str, Any] | None = None,
    icon: str = DEFAULT_ICON,
) -> NotificationPayload:
    return NotificationPayload(
        title=title,
        body=body,
        data={"type": NotificationType.SYSTEM.value, **(extra or {})},
        icon=icon,
        badge=icon,
        sound=DEFAULT_SOUND,
    )


def build_payload(
    type_: str,
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
    icon: str = DEFAULT_ICON,
) -> NotificationPayload:
    """Build the payload for a send request.

    For chat messages ``body`` is the message text and sender/channel details
    come from ``data``.
    """
    data = data or {}

    if type_ == NotificationType.CHAT_MESSAGE.value:
        return build_chat_notification(
            sender_name=data.get("senderName") or "Someone",
            text=body,
            channel_id=data.get("channelId") or "",
            message_id=data.get("messageId") or "",
            sender_id=data.get("senderId") or "",
            icon=icon,
        )
    if type_ == NotificationType.ASSIGNMENT.value:
        return build_assignment_notification(title, data.get("dueDate"), icon=icon)
    if type_ == NotificationType.SYSTEM.value:
        return build_system_notification(title, body, data, icon=icon)

    return NotificationPayload(
        title=title,
        body=body,
        data={**data, "type": type_},
        icon=icon,
        badge=icon,
    )
