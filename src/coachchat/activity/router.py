"""Activity endpoints: clients report foreground/background and chat view changes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coachchat.activity.schemas import ActivityResponse, ActivityUpdateRequest
from coachchat.activity.service import get_activity, set_activity
from coachchat.database import get_session

router = APIRouter(prefix="/api/v1", tags=["Activity"])


@router.put("/activity", response_model=ActivityResponse)
async def update_activity(
    body: ActivityUpdateRequest,
    db: AsyncSession = Depends(get_session),
):
    state = await set_activity(db, body.user_id, body.is_in_chat, body.platform.value)
    await db.commit()
    return ActivityResponse(
        user_id=state.user_id,
        is_in_chat=state.is_in_chat,
        last_activity=state.last_activity,
        platform=state.platform,
    )


@router.get("/activity/{user_id}", response_model=ActivityResponse)
async def read_activity(
    user_id: str,
    db: AsyncSession = Depends(get_session),
):
    """Merged activity across platforms. Never-seen users read as not in chat."""
    state = await get_activity(db, user_id)
    if state is None:
        return ActivityResponse(user_id=user_id, is_in_chat=False)
    return ActivityResponse(
        user_id=state.user_id,
        is_in_chat=state.is_in_chat,
        last_activity=state.last_activity,
        platform=state.platform,
    )
