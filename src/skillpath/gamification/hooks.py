"""Activity hooks called by the content services.

Gamification is a side effect of publishing, watching or completing
content: each hook runs the engine inside a SAVEPOINT, so a failure rolls
back only the gamification writes and never the caller's primary action.
Failures are logged for operators and the hook returns None.

The caller commits its session and then publishes ``outcome.events``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.config import get_settings
from skillpath.gamification.criteria import ActivityCount
from skillpath.gamification.engine import AwardOutcome, GamificationEngine, count_earnings
from skillpath.gamification.points_service import RelatedItem

logger = logging.getLogger(__name__)


async def _best_effort(
    db: AsyncSession,
    hook: str,
    user_id: int,
    work: Callable[[GamificationEngine], Awaitable[AwardOutcome]],
) -> AwardOutcome | None:
    engine = GamificationEngine(db)
    try:
        async with db.begin_nested():
            return await work(engine)
    except Exception:
        logger.warning("Gamification hook %s failed for user %s", hook, user_id, exc_info=True)
        return None


async def on_user_registered(db: AsyncSession, user_id: int, now: datetime | None = None) -> AwardOutcome | None:
    """Seed points account, streak, active challenges and the welcome badge."""
    return await _best_effort(db, "user_registered", user_id, lambda e: e.initialize_user(user_id, now))


async def on_login(db: AsyncSession, user_id: int, now: datetime | None = None) -> AwardOutcome | None:
    async def work(engine: GamificationEngine) -> AwardOutcome:
        return await engine.record_activity(user_id, ["login"], activity_type="login", now=now)

    return await _best_effort(db, "login", user_id, work)


async def on_blog_published(
    db: AsyncSession,
    user_id: int,
    blog_id: Any,
    title: str,
    now: datetime | None = None,
) -> AwardOutcome | None:
    """Award publishing points, then the blog-count badges the new total reaches."""
    settings = get_settings()
    item = RelatedItem.of(blog_id, "Blog")

    async def work(engine: GamificationEngine) -> AwardOutcome:
        outcome = await engine.award_points(
            user_id, settings.blog_publish_points, "blog", f"Published a blog: {title}", item,
            streak_tags=["other"], now=now,
        )
        published = await count_earnings(db, user_id, "blog", "Blog")
        return outcome.extend(await engine.award_badges_for(user_id, ActivityCount("blog", "publish", published), now))

    return await _best_effort(db, "blog_published", user_id, work)


async def on_video_progress(
    db: AsyncSession,
    user_id: int,
    video_id: Any,
    title: str,
    *,
    first_watch: bool,
    was_completed: bool,
    progress: float,
    now: datetime | None = None,
) -> AwardOutcome | None:
    """Points for starting a video and for first reaching the completion threshold."""
    settings = get_settings()
    item = RelatedItem.of(video_id, "Video")
    completes = not was_completed and progress >= settings.video_complete_threshold
    if not first_watch and not completes:
        return None

    async def work(engine: GamificationEngine) -> AwardOutcome:
        outcome = AwardOutcome(user_id=user_id)
        if first_watch:
            outcome.extend(await engine.award_points(
                user_id, settings.video_start_points, "video_watch", f"Started watching video: {title}", item,
                streak_tags=["video_watch"], now=now,
            ))
            watched = await count_earnings(db, user_id, "video_watch", "Video")
            outcome.extend(await engine.award_badges_for(user_id, ActivityCount("video", "watch", watched), now))
        if completes:
            outcome.extend(await engine.award_points(
                user_id, settings.video_complete_points, "video_watch", f"Completed video: {title}", item,
                streak_tags=["video_watch"], update_streak=not first_watch, now=now,
            ))
        return outcome

    return await _best_effort(db, "video_progress", user_id, work)


async def on_course_completed(
    db: AsyncSession,
    user_id: int,
    course_id: Any,
    title: str,
    now: datetime | None = None,
) -> AwardOutcome | None:
    settings = get_settings()
    item = RelatedItem.of(course_id, "Course")

    async def work(engine: GamificationEngine) -> AwardOutcome:
        outcome = await engine.award_points(
            user_id, settings.course_complete_points, "course_completion", f"Completed course: {title}", item,
            streak_tags=["course_progress"], now=now,
        )
        completed = await count_earnings(db, user_id, "course_completion", "Course")
        return outcome.extend(
            await engine.award_badges_for(user_id, ActivityCount("course", "complete", completed), now)
        )

    return await _best_effort(db, "course_completed", user_id, work)


def quiz_points(score: float) -> int:
    """Base points for passing plus the score bonus."""
    settings = get_settings()
    points = settings.quiz_pass_points
    if score >= 90:
        points += settings.quiz_excellent_bonus
    elif score >= 75:
        points += settings.quiz_good_bonus
    return points


async def on_quiz_passed(
    db: AsyncSession,
    user_id: int,
    quiz_id: Any,
    title: str,
    score: float,
    now: datetime | None = None,
) -> AwardOutcome | None:
    item = RelatedItem.of(quiz_id, "Quiz")

    async def work(engine: GamificationEngine) -> AwardOutcome:
        outcome = await engine.award_points(
            user_id, quiz_points(score), "quiz", f"Completed {title} with {score:.1f}% score", item,
            streak_tags=["quiz"], now=now,
        )
        if score >= 100:
            outcome.extend(await engine.award_badges_for(user_id, ActivityCount("quiz", "perfect", 1), now))
        return outcome

    return await _best_effort(db, "quiz_passed", user_id, work)


async def on_comment_posted(
    db: AsyncSession,
    user_id: int,
    comment_id: Any,
    now: datetime | None = None,
) -> AwardOutcome | None:
    settings = get_settings()
    item = RelatedItem.of(comment_id, "Comment")

    async def work(engine: GamificationEngine) -> AwardOutcome:
        outcome = await engine.award_points(
            user_id, settings.comment_points, "comment", "Posted a comment", item,
            streak_tags=["comment"], now=now,
        )
        posted = await count_earnings(db, user_id, "comment", "Comment")
        return outcome.extend(await engine.award_badges_for(user_id, ActivityCount("comment", "post", posted), now))

    return await _best_effort(db, "comment_posted", user_id, work)


# ---------------------------------------------------------------------------
# Dispatch for the internal events endpoint
# ---------------------------------------------------------------------------


async def dispatch(db: AsyncSession, event_type: str, user_id: int, data: dict[str, Any]) -> AwardOutcome | None:
    """Route a typed activity event to its hook."""
    now = data.get("occurred_at")
    if event_type == "user_registered":
        return await on_user_registered(db, user_id, now)
    if event_type == "login":
        return await on_login(db, user_id, now)
    if event_type == "blog_published":
        return await on_blog_published(db, user_id, data["item_id"], data.get("title", ""), now)
    if event_type == "video_progress":
        return await on_video_progress(
            db, user_id, data["item_id"], data.get("title", ""),
            first_watch=bool(data.get("first_watch", False)),
            was_completed=bool(data.get("was_completed", False)),
            progress=float(data.get("progress", 0)),
            now=now,
        )
    if event_type == "course_completed":
        return await on_course_completed(db, user_id, data["item_id"], data.get("title", ""), now)
    if event_type == "quiz_passed":
        return await on_quiz_passed(db, user_id, data["item_id"], data.get("title", ""), float(data["score"]), now)
    if event_type == "comment_posted":
        return await on_comment_posted(db, user_id, data["item_id"], now)
    msg = f"Unknown activity event: {event_type}"
    raise ValueError(msg)
