"""Shared test fixtures.

Every test gets its own SQLite database file; the schema is created from the
ORM metadata. Redis is never initialized, so event publishing is skipped and
the rate limiter lets requests through.
"""

from __future__ import annotations

import itertools
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.jwt import create_access_token
from skillpath.config import get_settings
from skillpath.database import close_db, get_engine, get_session_factory, init_db
from skillpath.db import models  # noqa: F401
from skillpath.db.base import Base
from skillpath.db.models import User
from skillpath.gamification.engine import GamificationEngine
from skillpath.users.service import sync_user

TEST_JWT_SECRET = "test-secret-for-skillpath-gamification-suite-0123456789"

_user_ids = itertools.count(1000)


@pytest_asyncio.fixture
async def database(tmp_path, monkeypatch) -> AsyncGenerator[None, None]:
    """Fresh SQLite database with the full schema."""
    monkeypatch.setenv("SKILLPATH_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("SKILLPATH_JWT_SECRET", TEST_JWT_SECRET)
    get_settings.cache_clear()

    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service-level tests."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def learner(db_session: AsyncSession) -> User:
    """A synced user with no gamification state yet."""
    user, _ = await sync_user(db_session, next(_user_ids), "learner", full_name="Ada Learner")
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a fresh app."""
    from skillpath.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(database) -> Callable[..., Awaitable[int]]:
    """Create (and by default initialize) a user in its own committed session."""

    async def _make(username: str, role: str = "user", *, initialize: bool = True) -> int:
        async with get_session_factory()() as db:
            user, _ = await sync_user(db, next(_user_ids), username, role=role)
            if initialize:
                await GamificationEngine(db).initialize_user(user.id)
            await db.commit()
            return user.id

    return _make


@pytest.fixture
def auth_headers(database) -> Callable[..., dict[str, str]]:
    """Bearer headers for a user id and role."""

    def _headers(user_id: int, role: str = "user") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

    return _headers
