"""Live view of one conversation built from message-lifecycle events.

The chat backend may redeliver events, so new messages are deduplicated by
message id: each id triggers the new-message callback at most once per
dedup window, and appears once in the message list.

The webhook route publishes every inbound message event to a
``ConversationHub``, which keeps one subscription per active conversation.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import AsyncIterable, Awaitable, Callable

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from coachchat.chat.client import ChatMessage, sort_by_created_at
from coachchat.chat.events import (
    MESSAGE_DELETED,
    MESSAGE_NEW,
    MESSAGE_UPDATED,
    ChatMessageEvent,
)
from coachchat.redis_client import claim_once, get_redis_or_none

logger = structlog.get_logger()

NewMessageCallback = Callable[[ChatMessageEvent], Awaitable[None]]
DuplicateCheck = Callable[[str], Awaitable[bool]]


class MessageDeduplicator:
    """Time-window deduplication for message ids.

    An OrderedDict keeps ids in arrival order so expired entries are evicted
    from the front.
    """

    def __init__(self, window_seconds: float = 600.0, max_entries: int = 10_000) -> None:
        self._seen: OrderedDict[str, float] = OrderedDict()
        self._window = window_seconds
        self._max_entries = max_entries

    def is_duplicate(self, message_id: str) -> bool:
        """True if ``message_id`` was seen inside the window; records it otherwise."""
        now = time.monotonic()
        self._evict(now)

        if message_id in self._seen:
            return True

        self._seen[message_id] = now
        while len(self._seen) > self._max_entries:
            self._seen.popitem(last=False)
        return False

    def _evict(self, now: float) -> None:
        cutoff = now - self._window
        while self._seen:
            _, ts = next(iter(self._seen.items()))
            if ts >= cutoff:
                break
            self._seen.popitem(last=False)


def _to_message(event: ChatMessageEvent) -> ChatMessage:
    return ChatMessage(
        id=event.message.id,
        text=event.message.text,
        user_id=event.message.sender.id,
        user_name=event.message.sender.name,
        created_at=event.message.created_at,
    )


class ConversationState:
    """Ordered messages of one channel."""

    def __init__(self, channel_id: str, history: list[ChatMessage] | None = None) -> None:
        self.channel_id = channel_id
        self._messages: list[ChatMessage] = sort_by_created_at(list(history or []))

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def contains(self, message_id: str) -> bool:
        return any(m.id == message_id for m in self._messages)

    def apply(self, event: ChatMessageEvent) -> bool:
        """Apply one lifecycle event. Returns True if the state changed."""
        if event.channel_id != self.channel_id:
            return False

        message_id = event.message.id
        if event.type == MESSAGE_NEW:
            if self.contains(message_id):
                return False
            self._messages.append(_to_message(event))
            self._messages = sort_by_created_at(self._messages)
            return True

        if event.type == MESSAGE_UPDATED:
            for i, existing in enumerate(self._messages):
                if existing.id == message_id:
                    self._messages[i] = _to_message(event)
                    return True
            return False

        if event.type == MESSAGE_DELETED:
            before = len(self._messages)
            self._messages = [m for m in self._messages if m.id != message_id]
            return len(self._messages) != before

        return False


class RedeliveryGuard:
    """Shared redelivery check for inbound message ids.

    Claims ``chat:event:{id}`` in Redis so every API worker agrees on the
    first delivery. Falls back to an in-process window while Redis is not
    initialized or failing.
    """

    def __init__(
        self,
        ttl_seconds: int,
        redis_getter: Callable[[], Redis | None] = get_redis_or_none,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._get_redis = redis_getter
        self._local = MessageDeduplicator(window_seconds=ttl_seconds)

    async def __call__(self, message_id: str) -> bool:
        client = self._get_redis()
        if client is not None:
            try:
                return not await claim_once(client, f"chat:event:{message_id}", self.ttl_seconds)
            except RedisError:
                logger.warning("chat_event_dedup_redis_failed", message_id=message_id, exc_info=True)
        return self._local.is_duplicate(message_id)


def _local_duplicate_check() -> DuplicateCheck:
    dedup = MessageDeduplicator()

    async def is_duplicate(message_id: str) -> bool:
        return dedup.is_duplicate(message_id)

    return is_duplicate


class ConversationSubscription:
    """Consume one channel's event stream, keep its state, notify once per new message."""

    def __init__(
        self,
        state: ConversationState,
        on_new_message: NewMessageCallback,
        is_duplicate: DuplicateCheck | None = None,
    ) -> None:
        self.state = state
        self.on_new_message = on_new_message
        self.is_duplicate = is_duplicate or _local_duplicate_check()

    async def handle(self, event: ChatMessageEvent) -> bool:
        """Apply one event. Returns True if it produced a new-message callback."""
        self.state.apply(event)
        if not event.is_new_message or event.channel_id != self.state.channel_id:
            return False
        if await self.is_duplicate(event.message.id):
            logger.info("chat_event_duplicate", channel_id=event.channel_id, message_id=event.message.id)
            return False
        await self.on_new_message(event)
        return True

    async def run(self, events: AsyncIterable[ChatMessageEvent]) -> int:
        """Process events until the stream ends. Returns the number of events handled."""
        handled = 0
        async for event in events:
            try:
                await self.handle(event)
            except Exception:
                logger.exception(
                    "chat_event_handler_failed",
                    channel_id=event.channel_id,
                    message_id=event.message.id,
                )
            handled += 1
        return handled


class ConversationHub:
    """One subscription per active conversation.

    Inbound chat events are published here; the first event for a channel
    opens its subscription. The least recently active conversations are
    dropped once ``max_conversations`` is exceeded. Every subscription shares
    the same new-message callback and redelivery check.
    """

    def __init__(
        self,
        on_new_message: NewMessageCallback,
        is_duplicate: DuplicateCheck | None = None,
        max_conversations: int = 1_000,
    ) -> None:
        self.on_new_message = on_new_message
        self.is_duplicate = is_duplicate or _local_duplicate_check()
        self.max_conversations = max_conversations
        self._subscriptions: OrderedDict[str, ConversationSubscription] = OrderedDict()

    @property
    def active_conversations(self) -> list[str]:
        return list(self._subscriptions)

    def subscription_for(self, channel_id: str) -> ConversationSubscription:
        subscription = self._subscriptions.get(channel_id)
        if subscription is not None:
            self._subscriptions.move_to_end(channel_id)
            return subscription

        subscription = ConversationSubscription(
            ConversationState(channel_id), self.on_new_message, self.is_duplicate
        )
        self._subscriptions[channel_id] = subscription
        while len(self._subscriptions) > self.max_conversations:
            self._subscriptions.popitem(last=False)
        return subscription

    async def publish(self, event: ChatMessageEvent) -> bool:
        """Route an event to its conversation. Returns True if it notified."""
        return await self.subscription_for(event.channel_id).handle(event)
