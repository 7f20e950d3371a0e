"""Pydantic schemas for activity endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from coachchat.db.models import USER_ID_LENGTH
from coachchat.notifications.types import Platform


class ActivityUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., min_length=1, max_length=USER_ID_LENGTH, alias="userId")
    is_in_chat: bool = Field(..., alias="isInChat")
    platform: Platform = Platform.WEB


class ActivityResponse(BaseModel):
    user_id: str
    is_in_chat: bool
    last_activity: datetime | None = None
    platform: str | None = None
