"""Delivery router: fan one payload out to every token of a recipient.

Routing rules:

- ``web`` + ``fcm`` tokens go to the web push provider.
- ``ios`` / ``android`` tokens go to the mobile push provider.
- Anything else is inert: not dispatched, no outcome reported.

Every token is attempted concurrently and independently; each attempt is
bounded by a timeout, and one token's failure never touches another's.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Protocol

import structlog

from coachchat.notifications.errors import DeliveryError, PushConfigurationError
from coachchat.notifications.push.base import BasePushProvider
from coachchat.notifications.types import (
    MOBILE_PLATFORMS,
    DeliveryOutcome,
    DeliveryStatus,
    NotificationPayload,
    Platform,
    TokenType,
)

logger = structlog.get_logger()


class TokenLike(Protocol):
    token: str
    platform: str
    token_type: str


class DeliveryRouter:
    """Pick a provider per token and collect per-token outcomes."""

    def __init__(
        self,
        web_provider: BasePushProvider,
        mobile_provider: BasePushProvider,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.web_provider = web_provider
        self.mobile_provider = mobile_provider
        self.timeout_seconds = timeout_seconds

    def provider_for(self, token: TokenLike) -> BasePushProvider | None:
        if token.platform == Platform.WEB.value and token.token_type == TokenType.FCM.value:
            return self.web_provider
        if token.platform in MOBILE_PLATFORMS:
            return self.mobile_provider
        return None

    def ensure_configured(self, tokens: Sequence[TokenLike]) -> None:
        """Raise PushConfigurationError if any routable token needs an unconfigured backend."""
        for token in tokens:
            provider = self.provider_for(token)
            if provider is not None and not provider.is_configured:
                msg = f"Push backend '{provider.name}' is not configured for platform '{token.platform}'"
                raise PushConfigurationError(msg)

    async def _deliver(
        self,
        provider: BasePushProvider,
        token: TokenLike,
        payload: NotificationPayload,
        recipient_user_id: str,
    ) -> DeliveryOutcome:
        try:
            await asyncio.wait_for(provider.send(token.token, payload), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            error = f"{provider.name} delivery timed out after {self.timeout_seconds:g}s"
        except DeliveryError as exc:
            error = exc.detail
        else:
            return DeliveryOutcome(platform=token.platform, status=DeliveryStatus.SENT.value)

        logger.warning(
            "push_delivery_failed",
            user_id=recipient_user_id,
            platform=token.platform,
            provider=provider.name,
            error=error,
        )
        return DeliveryOutcome(platform=token.platform, status=DeliveryStatus.FAILED.value, error=error)

    async def dispatch(
        self,
        payload: NotificationPayload,
        tokens: Sequence[TokenLike],
        recipient_user_id: str,
    ) -> list[DeliveryOutcome]:
        """Deliver to every routable token; return one outcome per dispatched token."""
        self.ensure_configured(tokens)

        routed: list[tuple[TokenLike, BasePushProvider]] = []
        for token in tokens:
            provider = self.provider_for(token)
            if provider is None:
                logger.debug(
                    "push_token_skipped",
                    user_id=recipient_user_id,
                    platform=token.platform,
                    token_type=token.token_type,
                )
                continue
            routed.append((token, provider))

        results = await asyncio.gather(
            *(self._deliver(provider, token, payload, recipient_user_id) for token, provider in routed),
            return_exceptions=True,
        )

        outcomes: list[DeliveryOutcome] = []
        for (token, provider), result in zip(routed, results):
            if isinstance(result, BaseException):
                logger.error(
                    "push_delivery_crashed",
                    user_id=recipient_user_id,
                    platform=token.platform,
                    provider=provider.name,
                    error=str(result),
                    exc_info=result,
                )
                outcomes.append(
                    DeliveryOutcome(
                        platform=token.platform,
                        status=DeliveryStatus.FAILED.value,
                        error=str(result) or type(result).__name__,
                    )
                )
            else:
                outcomes.append(result)
        return outcomes
