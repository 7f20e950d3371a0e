"""Per-user chat activity: who is looking at the conversation right now."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from coachchat.db.models import UserActivity
from coachchat.notifications.types import ActivityState


async def set_activity(
    db: AsyncSession,
    user_id: str,
    is_in_chat: bool,
    platform: str = "web",
    now: datetime | None = None,
) -> ActivityState:
    """Upsert the (user, platform) activity row with last_activity = now.

    The write replaces the row unconditionally, so a signal that arrives late
    over the network still wins.
    """
    now = now or datetime.now(timezone.utc)
    stmt = pg_insert(UserActivity).values(
        user_id=user_id,
        is_in_chat=is_in_chat,
        last_activity=now,
        platform=platform,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        constraint="uq_user_activity_user_platform",
        set_={
            "is_in_chat": stmt.excluded.is_in_chat,
            "last_activity": stmt.excluded.last_activity,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await db.execute(stmt)
    await db.flush()
    return ActivityState(user_id=user_id, is_in_chat=is_in_chat, last_activity=now, platform=platform)


def merge_activity(user_id: str, rows: list[UserActivity]) -> ActivityState | None:
    """Collapse per-platform rows into one view.

    In chat on any platform counts as in chat; the newest timestamp wins.
    """
    if not rows:
        return None
    newest = max(rows, key=lambda r: r.last_activity)
    return ActivityState(
        user_id=user_id,
        is_in_chat=any(r.is_in_chat for r in rows),
        last_activity=newest.last_activity,
        platform=newest.platform,
    )


async def get_activity(db: AsyncSession, user_id: str) -> ActivityState | None:
    """Current activity for a user, or None if no signal was ever recorded."""
    result = await db.execute(select(UserActivity).where(UserActivity.user_id == user_id))
    return merge_activity(user_id, list(result.scalars().all()))
