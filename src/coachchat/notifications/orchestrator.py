"""Notification orchestration.

One send runs through::

    validate -> filter (unless forced) -> build -> load tokens -> dispatch -> log per token

A suppressed send stops after writing a single ``suppressed`` log entry.
Inbound chat events run the same pipeline once per recipient, concurrently.

Every concurrent branch opens its own database session from the session
factory; nothing mutable is shared between branches.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coachchat.activity.service import get_activity
from coachchat.chat.events import ChatMessageEvent
from coachchat.db.models import USER_ID_LENGTH
from coachchat.notifications.dispatcher import DeliveryRouter
from coachchat.notifications.errors import NotFoundError, NotificationError, ValidationError
from coachchat.notifications.filtering import (
    DEFAULT_COOLDOWN_MINUTES,
    SUPPRESSION_REASON,
    should_notify,
)
from coachchat.notifications.log_service import log_notification
from coachchat.notifications.payloads import DEFAULT_ICON, build_payload
from coachchat.notifications.token_registry import get_active_tokens
from coachchat.notifications.types import (
    DeliveryStatus,
    NotificationType,
    SendRequest,
    SendResult,
)

logger = structlog.get_logger()

_REQUIRED_FIELDS = ("user_id", "type", "title", "body")


def validate_request(request: SendRequest) -> None:
    missing = [name for name in _REQUIRED_FIELDS if not getattr(request, name)]
    if missing:
        msg = f"Missing required fields: {', '.join(missing)}"
        raise ValidationError(msg)
    if len(request.user_id) > USER_ID_LENGTH:
        msg = f"userId must be at most {USER_ID_LENGTH} characters"
        raise ValidationError(msg)


def recipients_for(event: ChatMessageEvent) -> list[str]:
    """Channel members other than the sender, first occurrence order, no repeats."""
    seen: set[str] = set()
    recipients: list[str] = []
    for member_id in event.member_ids:
        if member_id == event.message.sender.id or member_id in seen:
            continue
        seen.add(member_id)
        recipients.append(member_id)
    return recipients


class NotificationOrchestrator:
    """Coordinates filtering, building, routing and logging of notifications."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        router: DeliveryRouter,
        cooldown_minutes: float = DEFAULT_COOLDOWN_MINUTES,
        icon: str = DEFAULT_ICON,
    ) -> None:
        self.session_factory = session_factory
        self.router = router
        self.cooldown_minutes = cooldown_minutes
        self.icon = icon

    async def _is_eligible(self, user_id: str) -> bool:
        async with self.session_factory() as db:
            activity = await get_activity(db, user_id)
        if activity is None:
            return True
        return should_notify(activity.is_in_chat, activity.last_activity, self.cooldown_minutes)

    async def _load_tokens(self, user_id: str) -> list[Any]:
        async with self.session_factory() as db:
            return await get_active_tokens(db, user_id)

    async def send_notification(self, request: SendRequest) -> SendResult:
        """Run one send for one recipient and return the aggregate result."""
        validate_request(request)
        user_id = request.user_id

        if not request.force_send and not await self._is_eligible(user_id):
            await log_notification(
                self.session_factory,
                user_id,
                request.type,
                request.title,
                request.body,
                DeliveryStatus.SUPPRESSED.value,
            )
            logger.info("notification_suppressed", user_id=user_id, type=request.type)
            return SendResult(status=DeliveryStatus.SUPPRESSED.value, reason=SUPPRESSION_REASON)

        payload = build_payload(request.type, request.title, request.body, request.data, icon=self.icon)

        tokens = await self._load_tokens(user_id)
        if not tokens:
            msg = "No active notification tokens found for user"
            raise NotFoundError(msg)

        outcomes = await self.router.dispatch(payload, tokens, user_id)

        await asyncio.gather(
            *(
                log_notification(
                    self.session_factory,
                    user_id,
                    request.type,
                    payload.title,
                    payload.body,
                    outcome.status,
                    outcome.platform,
                    outcome.error,
                )
                for outcome in outcomes
            )
        )

        result = SendResult(status=DeliveryStatus.SENT.value, outcomes=outcomes, total=len(tokens))
        logger.info(
            "notification_dispatched",
            user_id=user_id,
            type=request.type,
            total=result.total,
            successful=result.successful,
            failed=result.failed,
        )
        return result

    async def _notify_recipient(self, event: ChatMessageEvent, user_id: str) -> None:
        sender = event.message.sender
        request = SendRequest(
            user_id=user_id,
            type=NotificationType.CHAT_MESSAGE.value,
            title=f"New message from {sender.name}",
            body=event.message.text,
            data={
                "senderName": sender.name,
                "channelId": event.channel_id,
                "messageId": event.message.id,
                "senderId": sender.id,
            },
        )
        try:
            await self.send_notification(request)
        except NotFoundError:
            logger.debug("chat_notification_no_tokens", user_id=user_id, message_id=event.message.id)
        except NotificationError as exc:
            logger.warning(
                "chat_notification_failed",
                user_id=user_id,
                message_id=event.message.id,
                error=exc.detail,
                error_type=type(exc).__name__,
            )

    async def handle_inbound_message_event(self, event: ChatMessageEvent) -> None:
        """Notify every non-sender member of a new chat message. Never raises."""
        if not event.is_new_message:
            return

        recipients = recipients_for(event)
        if not recipients:
            return

        results = await asyncio.gather(
            *(self._notify_recipient(event, user_id) for user_id in recipients),
            return_exceptions=True,
        )
        for user_id, result in zip(recipients, results):
            if isinstance(result, BaseException):
                logger.error(
                    "chat_notification_crashed",
                    user_id=user_id,
                    message_id=event.message.id,
                    error=str(result),
                    exc_info=result,
                )
