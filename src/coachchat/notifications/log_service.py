"""Delivery log: append-only record of every notification attempt."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coachchat.db.models import NotificationLog
from coachchat.notifications.errors import LoggingError

logger = structlog.get_logger()


async def write_log_entry(
    db: AsyncSession,
    user_id: str,
    type_: str,
    title: str,
    body: str,
    status: str,
    platform: str | None = None,
    error_message: str | None = None,
) -> NotificationLog:
    """Insert and commit one log row. Raises LoggingError if the store rejects it."""
    entry = NotificationLog(
        user_id=user_id,
        type=type_,
        title=title,
        body=body,
        status=status,
        platform=platform,
        error_message=error_message or None,
        sent_at=datetime.now(timezone.utc),
    )
    try:
        db.add(entry)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise LoggingError(str(exc)) from exc
    return entry


async def log_notification(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: str,
    type_: str,
    title: str,
    body: str,
    status: str,
    platform: str | None = None,
    error_message: str | None = None,
) -> None:
    """Best-effort log write in its own session.

    Never raises: a failed write is reported and dropped so it cannot abort
    the send it describes.
    """
    try:
        async with session_factory() as db:
            await write_log_entry(db, user_id, type_, title, body, status, platform, error_message)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "notification_log_failed",
            user_id=user_id,
            type=type_,
            status=status,
            platform=platform,
            error=str(exc),
            error_type=type(exc).__name__,
        )


async def get_logs(db: AsyncSession, user_id: str, limit: int = 50) -> list[NotificationLog]:
    """A user's delivery log, newest first."""
    result = await db.execute(
        select(NotificationLog)
        .where(NotificationLog.user_id == user_id)
        .order_by(NotificationLog.sent_at.desc(), NotificationLog.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
