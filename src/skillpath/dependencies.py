"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Depends
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.database import get_session
from skillpath.gamification.engine import GamificationEngine
from skillpath.redis_client import get_redis_or_none


async def get_redis_dep() -> AsyncGenerator[redis.Redis | None, None]:
    """Yield the Redis client (or None) for best-effort event publishing."""
    yield get_redis_or_none()


async def get_engine(
    db: AsyncSession = Depends(get_session),
    redis_client: redis.Redis | None = Depends(get_redis_dep),
) -> GamificationEngine:
    """Gamification engine bound to the request's session.

    The route commits, then calls ``engine.publish()``.
    """
    return GamificationEngine(db, redis_client)
