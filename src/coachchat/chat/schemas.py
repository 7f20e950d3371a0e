"""Pydantic schemas for chat endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChatTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., min_length=1, alias="userId")


class ChatTokenResponse(BaseModel):
    user_id: str
    token: str
    api_key: str


class ChannelRequest(BaseModel):
    """The caller opens (or re-opens) the conversation with their partner."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., min_length=1, alias="userId")
    user_role: str = Field(..., alias="userRole")
    partner_id: str = Field(..., min_length=1, alias="partnerId")


class ChannelResponse(BaseModel):
    channel_id: str
    channel_type: str
    student_id: str
    coach_id: str


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., min_length=1, alias="userId")
    text: str = Field(..., min_length=1, max_length=5000)


class ChatUser(BaseModel):
    id: str
    name: str


class ChatMessageResponse(BaseModel):
    id: str
    text: str
    user: ChatUser
    created_at: datetime | None = None


class ChatHistoryResponse(BaseModel):
    channel_id: str
    messages: list[ChatMessageResponse]
