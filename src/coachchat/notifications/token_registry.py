"""Device token registry: one active push endpoint per (user, platform)."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import literal_column, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from coachchat.db.models import NotificationToken

logger = structlog.get_logger()


async def register_token(
    db: AsyncSession,
    user_id: str,
    token: str,
    platform: str,
    token_type: str,
) -> str:
    """Register (or re-register) a device token. Returns "created" or "updated".

    The write is a single upsert keyed on (user_id, platform), so a second
    registration for the same platform replaces the first and reactivates it.
    ``xmax = 0`` on the returned row version means the upsert inserted it.
    """
    now = datetime.now(timezone.utc)
    stmt = pg_insert(NotificationToken).values(
        user_id=user_id,
        token=token,
        platform=platform,
        token_type=token_type,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        constraint="uq_notification_tokens_user_platform",
        set_={
            "token": stmt.excluded.token,
            "token_type": stmt.excluded.token_type,
            "is_active": True,
            "updated_at": now,
        },
    ).returning(literal_column("(xmax = 0)").label("inserted"))
    result = await db.execute(stmt)
    action = "created" if result.scalar_one() else "updated"
    await db.flush()

    logger.info("notification_token_registered", user_id=user_id, platform=platform, action=action)
    return action


async def get_active_tokens(db: AsyncSession, user_id: str) -> list[NotificationToken]:
    """Active tokens for a user, ordered by platform."""
    result = await db.execute(
        select(NotificationToken)
        .where(NotificationToken.user_id == user_id, NotificationToken.is_active.is_(True))
        .order_by(NotificationToken.platform, NotificationToken.id)
    )
    return list(result.scalars().all())


async def deactivate_token(db: AsyncSession, user_id: str, platform: str) -> bool:
    """Soft-delete the user's token for a platform. Returns True if one was active."""
    result = await db.execute(
        update(NotificationToken)
        .where(
            NotificationToken.user_id == user_id,
            NotificationToken.platform == platform,
            NotificationToken.is_active.is_(True),
        )
        .values(is_active=False, updated_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount > 0
