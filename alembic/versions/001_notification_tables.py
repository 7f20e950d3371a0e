"""Activity, push token, and notification log tables.

Revision ID: 001_notification_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_notification_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create notification tables."""
    # --- user_activity ---
    op.create_table(
        "user_activity",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("is_in_chat", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=False),
        sa.Column("platform", sa.String(16), server_default="web", nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "platform", name="uq_user_activity_user_platform"),
    )
    op.execute(
        "ALTER TABLE user_activity ADD CONSTRAINT ck_user_activity_platform "
        "CHECK (platform IN ('web', 'ios', 'android'))"
    )

    # --- notification_tokens ---
    op.create_table(
        "notification_tokens",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("platform", sa.String(16), nullable=False),
        sa.Column("token_type", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "platform", name="uq_notification_tokens_user_platform"),
    )
    op.create_index("idx_notification_tokens_user_active", "notification_tokens", ["user_id", "is_active"])
    op.execute(
        "ALTER TABLE notification_tokens ADD CONSTRAINT ck_notification_tokens_platform "
        "CHECK (platform IN ('web', 'ios', 'android'))"
    )
    op.execute(
        "ALTER TABLE notification_tokens ADD CONSTRAINT ck_notification_tokens_type "
        "CHECK (token_type IN ('fcm', 'expo', 'apns'))"
    )

    # --- notification_logs ---
    op.create_table(
        "notification_logs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("platform", sa.String(16), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("idx_notification_logs_user_sent", "notification_logs", ["user_id", "sent_at"])
    op.execute(
        "ALTER TABLE notification_logs ADD CONSTRAINT ck_notification_logs_status "
        "CHECK (status IN ('sent', 'delivered', 'failed', 'suppressed'))"
    )


def downgrade() -> None:
    """Drop notification tables."""
    op.drop_table("notification_logs")
    op.drop_table("notification_tokens")
    op.drop_table("user_activity")
