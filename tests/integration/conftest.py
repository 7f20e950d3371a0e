"""PostgreSQL fixtures. Tests here are skipped when the database is unreachable."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from coachchat.config import get_settings
from coachchat.database import close_db, get_engine, get_session_factory, init_db
from coachchat.db import models  # noqa: F401
from coachchat.db.base import Base


@pytest_asyncio.fixture
async def pg_session_factory():
    settings = get_settings()
    await init_db(settings.database_url)
    try:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    except (OSError, OperationalError, DBAPIError) as exc:
        await close_db()
        pytest.skip(f"PostgreSQL not available: {exc}")

    yield get_session_factory()
    await close_db()


@pytest_asyncio.fixture
async def db_session(pg_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for repository tests."""
    async with pg_session_factory() as session:
        yield session
