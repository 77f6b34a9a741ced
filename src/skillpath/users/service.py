"""Local mirror of platform users.

Accounts live in the auth service; this service keeps the rows it needs for
foreign keys, the displayed-badge shelf and the leaderboard.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import User

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def sync_user(
    db: AsyncSession,
    user_id: int,
    username: str,
    *,
    full_name: str | None = None,
    email: str | None = None,
    avatar_url: str | None = None,
    role: str = "user",
) -> tuple[User, bool]:
    """Create or update the local user row. Returns (user, created)."""
    user = await get_user_by_id(db, user_id)
    created = user is None
    if user is None:
        user = User(id=user_id, username=username, displayed_badge_ids=[], current_level=1)
        db.add(user)
    user.username = username
    user.full_name = full_name
    user.email = email
    user.avatar_url = avatar_url
    user.role = role
    await db.flush()
    if created:
        logger.info("user_synced", user_id=user_id, created=True)
    return user, created
