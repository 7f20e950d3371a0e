"""ORM models for notification state.

User identities live in the hosted auth store, so ``user_id`` columns are
opaque strings without a foreign key.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from coachchat.db.base import Base

USER_ID_LENGTH = 64


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class UserActivity(Base):
    """Whether a user is viewing the conversation, per platform."""

    __tablename__ = "user_activity"
    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_user_activity_user_platform"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    is_in_chat: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    last_activity: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    platform: Mapped[str] = mapped_column(String(16), nullable=False, server_default="web")
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ---------------------------------------------------------------------------
# Push tokens
# ---------------------------------------------------------------------------


class NotificationToken(Base):
    """Device push endpoint. One row per (user, platform); soft-deleted via is_active."""

    __tablename__ = "notification_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", name="uq_notification_tokens_user_platform"),
        Index("idx_notification_tokens_user_active", "user_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    token: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)
    token_type: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ---------------------------------------------------------------------------
# Delivery log
# ---------------------------------------------------------------------------


class NotificationLog(Base):
    """Append-only record of every notification attempt."""

    __tablename__ = "notification_logs"
    __table_args__ = (Index("idx_notification_logs_user_sent", "user_id", "sent_at"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    platform: Mapped[str | None] = mapped_column(String(16), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
