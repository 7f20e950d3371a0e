"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from coachchat.database import get_session
from coachchat.chat.conversation import ConversationHub, RedeliveryGuard
from coachchat.dependencies import get_chat_client, get_conversation_hub, get_orchestrator
from coachchat.main import create_app
from helpers import FakeSessionFactory, mock_session


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def db_mock() -> MagicMock:
    """A mocked AsyncSession for route tests."""
    return mock_session()


@pytest.fixture
def orchestrator_mock() -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.send_notification = AsyncMock()
    orchestrator.handle_inbound_message_event = AsyncMock()
    return orchestrator


@pytest.fixture
def chat_client_mock() -> MagicMock:
    chat_client = MagicMock()
    chat_client.verify_webhook = MagicMock(return_value=True)
    chat_client.create_user_token = MagicMock(return_value="user-token")
    chat_client.get_or_create_channel = AsyncMock()
    chat_client.get_messages = AsyncMock(return_value=[])
    chat_client.send_message = AsyncMock()
    return chat_client


@pytest.fixture
def redis_mock() -> MagicMock:
    redis = MagicMock()
    redis.set = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def conversation_hub(orchestrator_mock: MagicMock, redis_mock: MagicMock) -> ConversationHub:
    """Hub that feeds the mocked orchestrator and claims message ids in the mocked Redis."""
    return ConversationHub(
        orchestrator_mock.handle_inbound_message_event,
        RedeliveryGuard(600, redis_getter=lambda: redis_mock),
    )


@pytest.fixture
def app(
    db_mock: MagicMock,
    orchestrator_mock: MagicMock,
    chat_client_mock: MagicMock,
    conversation_hub: ConversationHub,
) -> FastAPI:
    """The app with every backing service replaced by a mock."""
    app = create_app()

    async def _session_override():
        yield db_mock

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator_mock
    app.dependency_overrides[get_chat_client] = lambda: chat_client_mock
    app.dependency_overrides[get_conversation_hub] = lambda: conversation_hub
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the mocked app.

    The lifespan does not run, so the rate limiter sees no Redis and lets
    every request through.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
