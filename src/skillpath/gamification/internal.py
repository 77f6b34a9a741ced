"""Internal activity feed: content services report learner activity here."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.dependencies import require_service_token
from skillpath.database import get_session
from skillpath.dependencies import get_redis_dep
from skillpath.gamification.events import publish_events
from skillpath.gamification.hooks import dispatch
from skillpath.gamification.router import outcome_response
from skillpath.gamification.schemas import ActivityEventRequest, ActivityEventResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/internal", tags=["Internal"])

_NEEDS_ITEM = frozenset({"blog_published", "video_progress", "course_completed", "quiz_passed", "comment_posted"})


@router.post("/events", response_model=ActivityEventResponse)
async def ingest_event(
    body: ActivityEventRequest,
    _service: dict = Depends(require_service_token),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Run the gamification hook for one activity event.

    Gamification failures never fail the request; they come back as
    ``accepted: false`` and are logged.
    """
    if body.event_type in _NEEDS_ITEM and not body.item_id:
        raise HTTPException(status_code=422, detail=f"item_id is required for {body.event_type}")
    if body.event_type == "quiz_passed" and body.score is None:
        raise HTTPException(status_code=422, detail="score is required for quiz_passed")

    data = body.model_dump(exclude={"event_type", "user_id"})
    outcome = await dispatch(db, body.event_type, body.user_id, data)
    await db.commit()

    if outcome is None:
        logger.info("activity_event_skipped", event_type=body.event_type, user_id=body.user_id)
        return ActivityEventResponse(accepted=False)

    await publish_events(redis, outcome.events)
    return ActivityEventResponse(accepted=True, outcome=outcome_response(outcome))
