"""Value types shared by the notification pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationType(str, Enum):
    CHAT_MESSAGE = "chat_message"
    ASSIGNMENT = "assignment"
    REMINDER = "reminder"
    SYSTEM = "system"


class Platform(str, Enum):
    WEB = "web"
    IOS = "ios"
    ANDROID = "android"


class TokenType(str, Enum):
    FCM = "fcm"
    EXPO = "expo"
    APNS = "apns"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    SUPPRESSED = "suppressed"


MOBILE_PLATFORMS = frozenset({Platform.IOS.value, Platform.ANDROID.value})


@dataclass(frozen=True)
class NotificationAction:
    action: str
    title: str
    icon: str | None = None

    def as_dict(self) -> dict[str, str]:
        out = {"action": self.action, "title": self.title}
        if self.icon:
            out["icon"] = self.icon
        return out


@dataclass(frozen=True)
class NotificationPayload:
    """What a device shows. Built per send, never persisted."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    icon: str | None = None
    badge: str | None = None
    sound: str | None = None
    actions: tuple[NotificationAction, ...] = ()


@dataclass(frozen=True)
class ActivityState:
    """Recipient activity as seen by the eligibility filter."""

    user_id: str
    is_in_chat: bool
    last_activity: datetime | None
    platform: str | None = None


@dataclass(frozen=True)
class DeliveryOutcome:
    platform: str
    status: str
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"platform": self.platform, "status": self.status, "error": self.error or ""}


@dataclass(frozen=True)
class SendRequest:
    user_id: str
    type: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    force_send: bool = False


@dataclass
class SendResult:
    """Aggregate outcome of one send.

    ``status`` is ``sent`` once fan-out happened (even if every token failed)
    and ``suppressed`` when the filter stopped the send.
    """

    status: str
    reason: str | None = None
    outcomes: list[DeliveryOutcome] = field(default_factory=list)
    total: int = 0

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.status == DeliveryStatus.SENT.value)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == DeliveryStatus.FAILED.value)
