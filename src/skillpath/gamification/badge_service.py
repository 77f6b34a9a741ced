"""Badge registry and idempotent grant records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import Badge, BadgeAward, Challenge, User
from skillpath.exceptions import InvalidState, NotFound, ValidationError
from skillpath.gamification.criteria import BadgeCriteria, canonical_tag

logger = logging.getLogger(__name__)

BADGE_CATEGORIES = frozenset({"course", "video", "quiz", "attendance", "blog", "social", "special"})


async def get_badge(db: AsyncSession, badge_id: int) -> Badge | None:
    """Fetch a badge definition by id."""
    result = await db.execute(select(Badge).where(Badge.id == badge_id))
    return result.scalar_one_or_none()


async def get_badge_by_name(db: AsyncSession, name: str) -> Badge | None:
    """Fetch a badge definition by its unique name."""
    result = await db.execute(select(Badge).where(Badge.name == name))
    return result.scalar_one_or_none()


async def find_badges(db: AsyncSession, criteria: BadgeCriteria) -> list[Badge]:
    """All badges whose criteria equals ``criteria``."""
    result = await db.execute(
        select(Badge).where(Badge.criteria == criteria.tag).order_by(Badge.id)
    )
    return list(result.scalars().all())


async def has_badge(db: AsyncSession, user_id: int, badge_id: int) -> bool:
    """Check if user already has a specific badge."""
    result = await db.execute(
        select(BadgeAward.id).where(
            BadgeAward.user_id == user_id,
            BadgeAward.badge_id == badge_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def grant_badge(
    db: AsyncSession,
    user_id: int,
    badge: Badge,
    display_limit: int,
    now: datetime | None = None,
) -> BadgeAward | None:
    """Insert the award record; returns None if the user already holds the badge.

    Visible badges are appended to the user's displayed shelf while it has
    room; a full shelf is left untouched.
    """
    if await has_badge(db, user_id, badge.id):
        return None

    now = now or datetime.now(timezone.utc)
    user = None if badge.is_hidden else await db.get(User, user_id)
    shelf = list(user.displayed_badge_ids or []) if user is not None else []
    shelved = user is not None and badge.id not in shelf and len(shelf) < display_limit

    award = BadgeAward(
        user_id=user_id,
        badge_id=badge.id,
        earned_at=now,
        displayed=shelved,
    )
    try:
        async with db.begin_nested():
            db.add(award)
    except IntegrityError:
        return None  # Race condition: badge already awarded

    if shelved:
        user.displayed_badge_ids = [*shelf, badge.id]

    await db.flush()
    return award


# ---------------------------------------------------------------------------
# Registry (admin)
# ---------------------------------------------------------------------------


def _validate_badge_fields(data: dict[str, Any]) -> dict[str, Any]:
    if "criteria" in data and data["criteria"] is not None:
        data["criteria"] = canonical_tag(data["criteria"])
    if data.get("category") is not None and data["category"] not in BADGE_CATEGORIES:
        raise ValidationError(f"Unknown badge category: {data['category']}", field="category")
    if data.get("level") is not None and not 1 <= data["level"] <= 5:
        raise ValidationError("Badge level must be between 1 and 5", field="level")
    if data.get("points_awarded") is not None and data["points_awarded"] < 0:
        raise ValidationError("Badge points cannot be negative", field="points_awarded")
    return data


async def create_badge(db: AsyncSession, **fields: Any) -> Badge:
    """Create a badge definition. Duplicate names are rejected."""
    data = _validate_badge_fields(dict(fields))
    if await get_badge_by_name(db, data["name"]) is not None:
        raise InvalidState(f'Badge with name "{data["name"]}" already exists')

    badge = Badge(
        name=data["name"],
        description=data["description"],
        icon=data["icon"],
        category=data.get("category") or "special",
        level=data.get("level") or 1,
        points_awarded=data.get("points_awarded") or 0,
        criteria=data["criteria"],
        is_hidden=bool(data.get("is_hidden", False)),
        created_at=datetime.now(timezone.utc),
    )
    db.add(badge)
    await db.flush()
    return badge


async def update_badge(db: AsyncSession, badge_id: int, **fields: Any) -> Badge:
    """Patch a badge definition; only provided (non-None) fields change."""
    badge = await get_badge(db, badge_id)
    if badge is None:
        raise NotFound("Badge not found")

    data = _validate_badge_fields({k: v for k, v in fields.items() if v is not None})
    new_name = data.get("name")
    if new_name and new_name != badge.name:
        clash = await db.execute(select(Badge.id).where(Badge.name == new_name, Badge.id != badge_id))
        if clash.scalar_one_or_none() is not None:
            raise InvalidState(f'Badge with name "{new_name}" already exists')

    for key in ("name", "description", "icon", "category", "level", "points_awarded", "criteria", "is_hidden"):
        if key in data:
            setattr(badge, key, data[key])
    await db.flush()
    return badge


async def delete_badge(db: AsyncSession, badge_id: int) -> None:
    """Administrative cleanup: remove a badge, its awards and shelf references.

    Refused while a challenge still grants the badge.
    """
    badge = await get_badge(db, badge_id)
    if badge is None:
        raise NotFound("Badge not found")

    in_use = await db.execute(
        select(func.count()).select_from(Challenge).where(Challenge.reward_badge_id == badge_id)
    )
    if in_use.scalar_one() > 0:
        raise InvalidState("Cannot delete badge as it is used in challenges")

    holders = await db.execute(select(BadgeAward.user_id).where(BadgeAward.badge_id == badge_id))
    holder_ids = [row[0] for row in holders]

    await db.execute(delete(BadgeAward).where(BadgeAward.badge_id == badge_id))
    if holder_ids:
        users = await db.execute(select(User).where(User.id.in_(holder_ids)))
        for user in users.scalars():
            if badge_id in (user.displayed_badge_ids or []):
                user.displayed_badge_ids = [b for b in user.displayed_badge_ids if b != badge_id]

    await db.delete(badge)
    await db.flush()
    logger.info("Deleted badge %s (%s), removed from %d users", badge_id, badge.name, len(holder_ids))


async def list_badges(db: AsyncSession) -> list[Badge]:
    """All badge definitions, ordered for the admin catalog."""
    result = await db.execute(select(Badge).order_by(Badge.category, Badge.level, Badge.name))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# User-facing queries
# ---------------------------------------------------------------------------


async def get_user_badges(db: AsyncSession, user_id: int) -> list[BadgeAward]:
    """Badges earned by a user, newest first."""
    result = await db.execute(
        select(BadgeAward)
        .where(BadgeAward.user_id == user_id)
        .order_by(BadgeAward.earned_at.desc(), BadgeAward.id.desc())
    )
    return list(result.unique().scalars().all())


async def set_displayed_badges(
    db: AsyncSession,
    user_id: int,
    badge_ids: list[int],
    display_limit: int,
) -> list[int]:
    """Replace the user's displayed shelf with earned badges only."""
    if len(badge_ids) > display_limit:
        raise ValidationError(f"You can display a maximum of {display_limit} badges", field="badge_ids")
    unique_ids = list(dict.fromkeys(badge_ids))

    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    result = await db.execute(select(BadgeAward).where(BadgeAward.user_id == user_id))
    awards = list(result.unique().scalars().all())
    if not set(unique_ids) <= {award.badge_id for award in awards}:
        raise ValidationError("You can only display badges that you have earned", field="badge_ids")

    for award in awards:
        award.displayed = award.badge_id in unique_ids
    user.displayed_badge_ids = unique_ids
    await db.flush()
    return unique_ids
