"""User sync endpoint, called by the auth service on registration and profile edits."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.dependencies import require_service_token
from skillpath.database import get_session
from skillpath.dependencies import get_redis_dep
from skillpath.gamification.events import publish_events
from skillpath.gamification.hooks import on_user_registered
from skillpath.users.schemas import UserSyncRequest, UserSyncResponse
from skillpath.users.service import sync_user

router = APIRouter(prefix="/api/v1/internal/users", tags=["Internal"])


@router.put("/{user_id}", response_model=UserSyncResponse)
async def upsert_user(
    user_id: int,
    body: UserSyncRequest,
    _service: dict = Depends(require_service_token),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Mirror a platform user; a new user is seeded for gamification."""
    user, created = await sync_user(db, user_id, **body.model_dump())
    outcome = await on_user_registered(db, user.id) if created else None
    await db.commit()
    if outcome is not None:
        await publish_events(redis, outcome.events)
    return UserSyncResponse(id=user.id, username=user.username, created=created, current_level=user.current_level)
