"""Unit tests for the delivery log writer."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import Text
from sqlalchemy.exc import OperationalError

from coachchat.db.models import NotificationLog
from coachchat.notifications.errors import LoggingError
from coachchat.notifications.log_service import log_notification, write_log_entry


class TestWriteLogEntry:
    @pytest.mark.parametrize("column", ["type", "title", "body"])
    def test_free_text_columns_are_unbounded(self, column):
        """Unknown notification types and long sender names must still be logged."""
        assert isinstance(NotificationLog.__table__.c[column].type, Text)

    async def test_row_added_and_committed(self, db_mock):
        entry = await write_log_entry(db_mock, "u1", "system", "Title", "Body", "failed", "ios", "bad token")

        db_mock.add.assert_called_once_with(entry)
        db_mock.commit.assert_awaited_once()
        assert entry.status == "failed"
        assert entry.platform == "ios"
        assert entry.error_message == "bad token"
        assert entry.sent_at is not None

    async def test_empty_error_stored_as_null(self, db_mock):
        entry = await write_log_entry(db_mock, "u1", "system", "T", "B", "sent", "web", "")
        assert entry.error_message is None

    async def test_store_failure_raises_logging_error(self, db_mock):
        db_mock.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("db down")))
        with pytest.raises(LoggingError):
            await write_log_entry(db_mock, "u1", "system", "T", "B", "sent")
        db_mock.rollback.assert_awaited_once()


class TestLogNotification:
    async def test_uses_own_session(self, session_factory):
        await log_notification(session_factory, "u1", "system", "T", "B", "suppressed")

        assert len(session_factory.sessions) == 1
        session = session_factory.sessions[0]
        session.commit.assert_awaited_once()
        row = session.add.call_args.args[0]
        assert row.status == "suppressed"
        assert row.platform is None

    async def test_failure_is_swallowed(self):
        factory = MagicMock(side_effect=RuntimeError("Database not initialized"))
        await log_notification(factory, "u1", "system", "T", "B", "sent", "web")
