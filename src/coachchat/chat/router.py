"""Chat endpoints: client tokens, student/coach channels, message history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from coachchat.chat.channels import CHANNEL_TYPE, resolve_pair
from coachchat.chat.client import BaseChatTransport, ChatMessage
from coachchat.chat.conversation import ConversationState
from coachchat.chat.schemas import (
    ChannelRequest,
    ChannelResponse,
    ChatHistoryResponse,
    ChatMessageResponse,
    ChatTokenRequest,
    ChatTokenResponse,
    ChatUser,
    SendMessageRequest,
)
from coachchat.config import get_settings
from coachchat.dependencies import get_chat_client

router = APIRouter(prefix="/api/v1/chat", tags=["Chat"])


def _message_response(message: ChatMessage) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        text=message.text,
        user=ChatUser(id=message.user_id, name=message.user_name),
        created_at=message.created_at,
    )


@router.post("/token", response_model=ChatTokenResponse)
async def create_chat_token(
    body: ChatTokenRequest,
    chat_client: BaseChatTransport = Depends(get_chat_client),
):
    """Mint the token a chat client SDK connects with."""
    token = chat_client.create_user_token(body.user_id)
    return ChatTokenResponse(user_id=body.user_id, token=token, api_key=get_settings().stream_api_key)


@router.post("/channels", response_model=ChannelResponse)
async def open_channel(
    body: ChannelRequest,
    chat_client: BaseChatTransport = Depends(get_chat_client),
):
    try:
        student_id, coach_id = resolve_pair(body.user_id, body.user_role, body.partner_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if student_id == coach_id:
        raise HTTPException(status_code=400, detail="Student and coach must be different users")

    channel_id = await chat_client.get_or_create_channel(student_id, coach_id, created_by_id=body.user_id)
    return ChannelResponse(
        channel_id=channel_id,
        channel_type=CHANNEL_TYPE,
        student_id=student_id,
        coach_id=coach_id,
    )


@router.get("/channels/{channel_id}/messages", response_model=ChatHistoryResponse)
async def channel_history(
    channel_id: str,
    limit: int = Query(50, ge=1, le=300),
    chat_client: BaseChatTransport = Depends(get_chat_client),
):
    """Message history, oldest first."""
    state = ConversationState(channel_id, await chat_client.get_messages(channel_id, limit))
    return ChatHistoryResponse(
        channel_id=channel_id,
        messages=[_message_response(m) for m in state.messages],
    )


@router.post("/channels/{channel_id}/messages", response_model=ChatMessageResponse, status_code=201)
async def post_message(
    channel_id: str,
    body: SendMessageRequest,
    chat_client: BaseChatTransport = Depends(get_chat_client),
):
    text = body.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message text is empty")
    message = await chat_client.send_message(channel_id, body.user_id, text)
    return _message_response(message)
