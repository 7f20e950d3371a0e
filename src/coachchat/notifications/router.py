"""Notification API endpoints."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coachchat.chat.client import BaseChatTransport
from coachchat.chat.conversation import ConversationHub
from coachchat.chat.events import MESSAGE_EVENT_TYPES, ChatMessageEvent
from coachchat.config import get_settings
from coachchat.database import get_session
from coachchat.db.models import USER_ID_LENGTH
from coachchat.dependencies import get_chat_client, get_conversation_hub, get_orchestrator
from coachchat.notifications.errors import ValidationError
from coachchat.notifications.log_service import get_logs
from coachchat.notifications.orchestrator import NotificationOrchestrator
from coachchat.notifications.schemas import (
    DeliveryDetail,
    DeliverySummary,
    NotificationLogListResponse,
    NotificationLogResponse,
    RegisterTokenRequest,
    RegisterTokenResponse,
    SendNotificationRequest,
    SendNotificationResponse,
    TokenListResponse,
    TokenResponse,
)
from coachchat.notifications.token_registry import (
    deactivate_token,
    get_active_tokens,
    register_token,
)
from coachchat.notifications.types import Platform, SendRequest

router = APIRouter(prefix="/api/v1", tags=["Notifications"])
logger = structlog.get_logger()

@router.post("/notifications/register", response_model=RegisterTokenResponse)
async def register_notification_token(
    body: RegisterTokenRequest,
    db: AsyncSession = Depends(get_session),
):
    """Register a device push token (one per user and platform)."""
    if not body.user_id or not body.token or body.platform is None or body.token_type is None:
        msg = "Missing required fields: userId, token, platform, tokenType"
        raise ValidationError(msg)
    if len(body.user_id) > USER_ID_LENGTH:
        msg = f"userId must be at most {USER_ID_LENGTH} characters"
        raise ValidationError(msg)

    action = await register_token(db, body.user_id, body.token, body.platform.value, body.token_type.value)
    await db.commit()
    return RegisterTokenResponse(action=action)


@router.post("/notifications/send", response_model=SendNotificationResponse)
async def send_notification(
    body: SendNotificationRequest,
    orchestrator: NotificationOrchestrator = Depends(get_orchestrator),
):
    """Send a notification to every active device of a user, unless suppressed."""
    result = await orchestrator.send_notification(
        SendRequest(
            user_id=body.user_id or "",
            type=body.type or "",
            title=body.title or "",
            body=body.body or "",
            data=body.data or {},
            force_send=body.force_send,
        )
    )
    if result.reason is not None:
        return SendNotificationResponse(status=result.status, reason=result.reason)

    return SendNotificationResponse(
        status=result.status,
        results=DeliverySummary(
            total=result.total,
            successful=result.successful,
            failed=result.failed,
            details=[DeliveryDetail(**o.as_dict()) for o in result.outcomes],
        ),
    )


@router.post("/notifications/webhook")
async def chat_webhook(
    request: Request,
    chat_client: BaseChatTransport = Depends(get_chat_client),
    hub: ConversationHub = Depends(get_conversation_hub),
):
    """Inbound chat events.

    Message lifecycle events are published to their conversation; only the
    first delivery of a new message notifies the other members.
    """
    raw = await request.body()
    if get_settings().chat_webhook_verify_signature and not chat_client.verify_webhook(
        raw, request.headers.get("X-Signature")
    ):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc

    event_type = payload.get("type") if isinstance(payload, dict) else None
    logger.info("chat_webhook_received", type=event_type)
    if event_type not in MESSAGE_EVENT_TYPES:
        return {"success": True}

    try:
        event = ChatMessageEvent.from_webhook(payload)
    except (ValueError, KeyError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid message event: {exc}") from exc

    await hub.publish(event)
    return {"success": True}


@router.get("/notifications/tokens/{user_id}", response_model=TokenListResponse)
async def list_tokens(
    user_id: str,
    db: AsyncSession = Depends(get_session),
):
    """Active device tokens of a user (token values are not returned)."""
    tokens = await get_active_tokens(db, user_id)
    return TokenListResponse(
        tokens=[
            TokenResponse(
                id=t.id,
                platform=t.platform,
                token_type=t.token_type,
                is_active=t.is_active,
                updated_at=t.updated_at,
            )
            for t in tokens
        ]
    )


@router.delete("/notifications/tokens/{user_id}/{platform}", status_code=200)
async def remove_token(
    user_id: str,
    platform: Platform,
    db: AsyncSession = Depends(get_session),
):
    """Deactivate a user's token for one platform."""
    found = await deactivate_token(db, user_id, platform.value)
    if not found:
        raise HTTPException(status_code=404, detail="Active token not found")
    await db.commit()
    return {"detail": "Token deactivated"}


@router.get("/notifications/logs/{user_id}", response_model=NotificationLogListResponse)
async def list_logs(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_session),
):
    """Delivery log of a user, newest first."""
    logs = await get_logs(db, user_id, limit)
    return NotificationLogListResponse(
        logs=[
            NotificationLogResponse(
                id=entry.id,
                type=entry.type,
                title=entry.title,
                body=entry.body,
                status=entry.status,
                platform=entry.platform,
                error_message=entry.error_message,
                sent_at=entry.sent_at,
            )
            for entry in logs
        ]
    )
