"""Streak tracking: consecutive active days with a bounded day history.

All day arithmetic happens in one configured timezone (``streak_timezone``);
"today" is the calendar date of ``now`` in that zone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.config import get_settings
from skillpath.db.models import Streak

logger = logging.getLogger(__name__)

STREAK_ACTIVITIES = frozenset({"video_watch", "course_progress", "quiz", "comment", "login", "other"})


@lru_cache
def streak_zone(name: str) -> tzinfo:
    """Resolve the configured timezone name."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def local_day(moment: datetime, tz_name: str | None = None) -> date:
    """Calendar day of ``moment`` in the streak timezone."""
    tz = streak_zone(tz_name or get_settings().streak_timezone)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


@dataclass
class StreakUpdate:
    streak: Streak
    changed: bool  # counter moved (new day), as opposed to a same-day tag append
    milestone: int | None = None  # set whenever the counter sits on a milestone


def _merge_tags(existing: list[str], new: list[str]) -> list[str]:
    merged = list(existing)
    for tag in new:
        if tag not in merged:
            merged.append(tag)
    return merged


def apply_activity(
    streak: Streak,
    today: date,
    activities: list[str],
    history_days: int,
) -> bool:
    """Apply one day's activity to the streak in place.

    Returns True if the counter moved (first activity of a new day).
    """
    history = [dict(entry) for entry in (streak.history or [])]
    today_iso = today.isoformat()
    last = streak.last_activity_date
    changed = False

    if last == today:
        for entry in history:
            if entry.get("day") == today_iso:
                entry["activities"] = _merge_tags(entry.get("activities", []), activities)
                break
        else:
            history.append({"day": today_iso, "activities": _merge_tags([], activities)})
    else:
        if last is not None and last == today - timedelta(days=1) and streak.current_streak >= 1:
            streak.current_streak += 1
        else:
            # Gap of two or more days, first activity ever, or a zeroed counter
            streak.current_streak = 1
        streak.longest_streak = max(streak.longest_streak, streak.current_streak)
        history = [entry for entry in history if entry.get("day") != today_iso]
        history.append({"day": today_iso, "activities": _merge_tags([], activities)})
        changed = True

    history = history[-history_days:]

    # Repair counters that were left at zero while history exists
    if history and streak.current_streak < 1:
        streak.current_streak = 1
    streak.longest_streak = max(streak.longest_streak, streak.current_streak)

    streak.last_activity_date = today
    streak.history = history
    return changed


async def get_streak(db: AsyncSession, user_id: int) -> Streak | None:
    result = await db.execute(select(Streak).where(Streak.user_id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_streak(
    db: AsyncSession,
    user_id: int,
    *,
    lock: bool = False,
) -> Streak:
    """Get or create the streak row for a user (empty history, zero counters)."""
    stmt = select(Streak).where(Streak.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    streak = result.scalar_one_or_none()
    if streak is not None:
        return streak

    streak = Streak(
        user_id=user_id,
        current_streak=0,
        longest_streak=0,
        last_activity_date=None,
        history=[],
        updated_at=datetime.now(timezone.utc),
    )
    try:
        async with db.begin_nested():
            db.add(streak)
    except IntegrityError:
        result = await db.execute(stmt.execution_options(populate_existing=True))
        streak = result.scalar_one()
    return streak


async def touch_streak(
    db: AsyncSession,
    user_id: int,
    activities: list[str],
    now: datetime | None = None,
) -> StreakUpdate:
    """Record activity for today and report any milestone reached.

    Same day: merge tags, counter unchanged. Yesterday: counter + 1.
    Anything older (or no record): counter resets to 1.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    today = local_day(now, settings.streak_timezone)

    streak = await get_or_create_streak(db, user_id, lock=True)
    changed = apply_activity(streak, today, activities, settings.streak_history_days)
    streak.updated_at = now
    await db.flush()

    milestone = None
    if streak.current_streak in settings.streak_milestones:
        milestone = streak.current_streak
        if changed:
            logger.info("User %s reached a %d-day streak", user_id, milestone)

    return StreakUpdate(streak=streak, changed=changed, milestone=milestone)


async def refresh_streak(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> Streak:
    """Repair a user's streak: counter at least 1 and today present in history.

    Does not advance the counter; an existing streak for today is left as is.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    today = local_day(now, settings.streak_timezone)

    streak = await get_or_create_streak(db, user_id, lock=True)
    history = [dict(entry) for entry in (streak.history or [])]
    if not any(entry.get("day") == today.isoformat() for entry in history):
        history.append({"day": today.isoformat(), "activities": ["login"]})
    streak.history = history[-settings.streak_history_days:]

    if streak.current_streak < 1:
        streak.current_streak = 1
    streak.longest_streak = max(streak.longest_streak, streak.current_streak)
    if streak.last_activity_date is None or streak.last_activity_date < today:
        streak.last_activity_date = today
    streak.updated_at = now
    await db.flush()
    return streak


async def get_streaks_for_users(db: AsyncSession, user_ids: list[int]) -> list[Streak]:
    """Streak rows for a set of users (leaderboard decoration)."""
    if not user_ids:
        return []
    result = await db.execute(select(Streak).where(Streak.user_id.in_(user_ids)))
    return list(result.scalars().all())
