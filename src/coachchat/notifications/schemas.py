"""Pydantic schemas for notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from coachchat.notifications.types import Platform, TokenType


class RegisterTokenRequest(BaseModel):
    """Fields are optional here so that missing ones surface as a 400, not a 422."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")
    token: str | None = None
    platform: Platform | None = None
    token_type: TokenType | None = Field(None, alias="tokenType")


class RegisterTokenResponse(BaseModel):
    success: bool = True
    action: str


class SendNotificationRequest(BaseModel):
    """Fields are optional here so that missing ones surface as a 400, not a 422."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")
    type: str | None = None
    title: str | None = None
    body: str | None = None
    data: dict[str, Any] | None = None
    force_send: bool = Field(False, alias="forceSend")


class DeliveryDetail(BaseModel):
    platform: str
    status: str
    error: str = ""


class DeliverySummary(BaseModel):
    total: int
    successful: int
    failed: int
    details: list[DeliveryDetail]


class SendNotificationResponse(BaseModel):
    success: bool = True
    status: str
    reason: str | None = None
    results: DeliverySummary | None = None


class TokenResponse(BaseModel):
    id: int
    platform: str
    token_type: str
    is_active: bool
    updated_at: datetime | None = None


class TokenListResponse(BaseModel):
    tokens: list[TokenResponse]


class NotificationLogResponse(BaseModel):
    id: int
    type: str
    title: str
    body: str
    status: str
    platform: str | None = None
    error_message: str | None = None
    sent_at: datetime


class NotificationLogListResponse(BaseModel):
    logs: list[NotificationLogResponse]
