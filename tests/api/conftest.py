"""API test fixtures: seeded badge catalog and an admin account."""

from __future__ import annotations

import pytest_asyncio

from skillpath.database import get_session_factory
from skillpath.gamification.seed import seed_badges


@pytest_asyncio.fixture
async def seeded(database) -> None:
    async with get_session_factory()() as db:
        await seed_badges(db)


@pytest_asyncio.fixture
async def admin_headers(make_user, auth_headers) -> dict[str, str]:
    admin_id = await make_user("admin", role="admin", initialize=False)
    return auth_headers(admin_id, "admin")
