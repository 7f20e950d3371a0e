"""Test doubles shared across test packages."""

from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from coachchat.notifications.errors import DeliveryError
from coachchat.notifications.push.base import BasePushProvider


def mock_session() -> MagicMock:
    """A MagicMock shaped like an AsyncSession."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    return session


class FakeSessionFactory:
    """Stands in for an ``async_sessionmaker``; records every session it opens."""

    def __init__(self) -> None:
        self.sessions: list[MagicMock] = []

    @asynccontextmanager
    async def _session(self):
        session = mock_session()
        self.sessions.append(session)
        yield session

    def __call__(self):
        return self._session()


class FakePushProvider(BasePushProvider):
    """Records sends; fails for tokens listed in ``failing``."""

    def __init__(self, name: str = "fake", failing: set[str] | None = None, configured: bool = True) -> None:
        self.name = name
        self.failing = failing or set()
        self.configured = configured
        self.sent: list[tuple[str, object]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def send(self, token, payload) -> None:
        if token in self.failing:
            msg = f"{self.name} rejected {token}"
            raise DeliveryError(msg)
        self.sent.append((token, payload))


def make_token(token: str, platform: str, token_type: str) -> SimpleNamespace:
    return SimpleNamespace(token=token, platform=platform, token_type=token_type, is_active=True)
