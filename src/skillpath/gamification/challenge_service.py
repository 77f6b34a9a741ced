"""Challenge definitions, per-user assignment and progress tracking."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import Badge, Challenge, ChallengeProgress, User
from skillpath.exceptions import NotFound, ValidationError
from skillpath.gamification.points_service import RelatedItem

logger = logging.getLogger(__name__)

CHALLENGE_TYPES = frozenset({"daily", "weekly", "monthly", "special"})
CHALLENGE_STATUSES = frozenset({"active", "completed", "all"})


def _matches_items(challenge: Challenge, related_item: RelatedItem | None) -> bool:
    """An empty filter accepts any item; otherwise the item must be listed."""
    if not challenge.specific_items:
        return True
    if related_item is None:
        return False
    return any(
        str(item.get("item_id")) == related_item.item_id and item.get("item_type") == related_item.item_type
        for item in challenge.specific_items
    )


async def advance_progress(
    db: AsyncSession,
    user_id: int,
    activity_type: str,
    increment: int = 1,
    related_item: RelatedItem | None = None,
    now: datetime | None = None,
) -> list[ChallengeProgress]:
    """Add ``increment`` to every open, matching, in-window challenge row of the user.

    Returns the rows that reached their target during this call. Completed
    rows are never touched again, so a reward follows at most once.
    """
    if increment <= 0:
        return []
    now = now or datetime.now(timezone.utc)

    result = await db.execute(
        select(ChallengeProgress)
        .join(Challenge, ChallengeProgress.challenge_id == Challenge.id)
        .where(
            ChallengeProgress.user_id == user_id,
            ChallengeProgress.is_completed.is_(False),
            Challenge.is_active.is_(True),
            Challenge.activity_type == activity_type,
            Challenge.start_date <= now,
            Challenge.end_date >= now,
        )
        .order_by(ChallengeProgress.id)
        .with_for_update(of=ChallengeProgress)
    )
    rows = list(result.unique().scalars().all())

    completed: list[ChallengeProgress] = []
    for row in rows:
        if not _matches_items(row.challenge, related_item):
            continue
        row.progress += increment
        if row.progress >= row.challenge.target_count:
            row.is_completed = True
            row.completed_at = now
            completed.append(row)
            logger.info("User %s completed challenge %s", user_id, row.challenge_id)

    if rows:
        await db.flush()
    return completed


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


async def _seed_rows(db: AsyncSession, challenge: Challenge, user_ids: list[int]) -> int:
    now = datetime.now(timezone.utc)
    for uid in user_ids:
        db.add(ChallengeProgress(user_id=uid, challenge_id=challenge.id, progress=0, created_at=now))
    await db.flush()
    return len(user_ids)


async def backfill_challenge(db: AsyncSession, challenge: Challenge) -> int:
    """Create zero-progress rows for every user that is missing one."""
    assigned = select(ChallengeProgress.user_id).where(ChallengeProgress.challenge_id == challenge.id)
    result = await db.execute(select(User.id).where(User.id.not_in(assigned)).order_by(User.id))
    return await _seed_rows(db, challenge, [row[0] for row in result])


async def assign_active_challenges(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> int:
    """Seed a (new) user with every challenge active at ``now``."""
    now = now or datetime.now(timezone.utc)
    assigned = select(ChallengeProgress.challenge_id).where(ChallengeProgress.user_id == user_id)
    result = await db.execute(
        select(Challenge.id).where(
            Challenge.is_active.is_(True),
            Challenge.start_date <= now,
            Challenge.end_date >= now,
            Challenge.id.not_in(assigned),
        )
    )
    challenge_ids = [row[0] for row in result]
    for challenge_id in challenge_ids:
        db.add(ChallengeProgress(user_id=user_id, challenge_id=challenge_id, progress=0, created_at=now))
    if challenge_ids:
        await db.flush()
    return len(challenge_ids)


# ---------------------------------------------------------------------------
# Definitions (admin)
# ---------------------------------------------------------------------------


async def get_challenge(db: AsyncSession, challenge_id: int) -> Challenge | None:
    result = await db.execute(select(Challenge).where(Challenge.id == challenge_id))
    return result.scalar_one_or_none()


def _normalize_items(items: list[Any] | None) -> list[dict[str, str]]:
    normalized = []
    for item in items or []:
        if isinstance(item, RelatedItem):
            normalized.append({"item_id": item.item_id, "item_type": item.item_type})
        else:
            normalized.append({"item_id": str(item["item_id"]), "item_type": str(item["item_type"])})
    return normalized


async def _validate_challenge_fields(db: AsyncSession, data: dict[str, Any]) -> dict[str, Any]:
    if data.get("type") is not None and data["type"] not in CHALLENGE_TYPES:
        raise ValidationError(f"Unknown challenge type: {data['type']}", field="type")
    if data.get("target_count") is not None and data["target_count"] < 1:
        raise ValidationError("Target count must be at least 1", field="target_count")
    if data.get("reward_points") is not None and data["reward_points"] < 0:
        raise ValidationError("Reward points cannot be negative", field="reward_points")
    if data.get("reward_badge_id") is not None and await db.get(Badge, data["reward_badge_id"]) is None:
        raise NotFound("Reward badge not found")
    if "specific_items" in data:
        data["specific_items"] = _normalize_items(data["specific_items"])
    return data


async def create_challenge(db: AsyncSession, **fields: Any) -> Challenge:
    """Create a challenge; an active one is assigned to every existing user."""
    data = await _validate_challenge_fields(db, dict(fields))
    if data["end_date"] <= data["start_date"]:
        raise ValidationError("End date must be after start date", field="end_date")

    challenge = Challenge(
        title=data["title"],
        description=data["description"],
        type=data.get("type") or "daily",
        activity_type=data["activity_type"],
        target_count=data["target_count"],
        specific_items=data.get("specific_items") or [],
        reward_points=data.get("reward_points") or 0,
        reward_badge_id=data.get("reward_badge_id"),
        start_date=data["start_date"],
        end_date=data["end_date"],
        is_active=bool(data.get("is_active", True)),
        created_at=datetime.now(timezone.utc),
    )
    db.add(challenge)
    await db.flush()

    if challenge.is_active:
        seeded = await backfill_challenge(db, challenge)
        logger.info("Challenge %s created and assigned to %d users", challenge.id, seeded)
    return challenge


async def update_challenge(db: AsyncSession, challenge_id: int, **fields: Any) -> Challenge:
    """Patch a challenge. Reactivation backfills users missing a row."""
    challenge = await get_challenge(db, challenge_id)
    if challenge is None:
        raise NotFound("Challenge not found")

    data = await _validate_challenge_fields(db, {k: v for k, v in fields.items() if v is not None})
    was_active = challenge.is_active

    for key in (
        "title", "description", "type", "activity_type", "target_count", "specific_items",
        "reward_points", "reward_badge_id", "start_date", "end_date", "is_active",
    ):
        if key in data:
            setattr(challenge, key, data[key])
    if challenge.end_date <= challenge.start_date:
        raise ValidationError("End date must be after start date", field="end_date")
    await db.flush()

    if not was_active and challenge.is_active:
        seeded = await backfill_challenge(db, challenge)
        logger.info("Challenge %s reactivated, backfilled %d users", challenge.id, seeded)
    return challenge


async def delete_challenge(db: AsyncSession, challenge_id: int) -> None:
    """Remove a challenge and every progress row attached to it."""
    challenge = await get_challenge(db, challenge_id)
    if challenge is None:
        raise NotFound("Challenge not found")
    await db.execute(delete(ChallengeProgress).where(ChallengeProgress.challenge_id == challenge_id))
    await db.delete(challenge)
    await db.flush()


def _check_status(status: str) -> None:
    if status not in CHALLENGE_STATUSES:
        raise ValidationError(f"Unknown challenge status: {status}", field="status")


async def list_challenges(
    db: AsyncSession,
    status: str = "all",
    now: datetime | None = None,
) -> list[Challenge]:
    """Admin listing. ``active``: enabled and within its window; ``completed``: past its end date."""
    _check_status(status)
    now = now or datetime.now(timezone.utc)
    stmt = select(Challenge).order_by(Challenge.start_date.desc(), Challenge.id.desc())
    if status == "active":
        stmt = stmt.where(Challenge.is_active.is_(True), Challenge.end_date >= now)
    elif status == "completed":
        stmt = stmt.where(Challenge.end_date < now)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_user_challenges(
    db: AsyncSession,
    user_id: int,
    status: str = "active",
    now: datetime | None = None,
) -> list[ChallengeProgress]:
    """A user's challenge rows. ``active`` means open and not yet expired."""
    _check_status(status)
    now = now or datetime.now(timezone.utc)
    stmt = (
        select(ChallengeProgress)
        .join(Challenge, ChallengeProgress.challenge_id == Challenge.id)
        .where(ChallengeProgress.user_id == user_id)
        .order_by(Challenge.end_date.asc(), ChallengeProgress.id.asc())
    )
    if status == "active":
        stmt = stmt.where(
            ChallengeProgress.is_completed.is_(False),
            Challenge.is_active.is_(True),
            Challenge.end_date >= now,
        )
    elif status == "completed":
        stmt = stmt.where(ChallengeProgress.is_completed.is_(True))
    result = await db.execute(stmt)
    return list(result.unique().scalars().all())
