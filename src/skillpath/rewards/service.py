"""Reward catalog and point redemption.

Redemption is the only flow that removes points from an account. Stock and
balance are both decremented by guarded UPDATEs, so two concurrent
redemptions cannot both pass a check made against a stale read.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.config import get_settings
from skillpath.db.models import PointsAccount, Redemption, Reward
from skillpath.exceptions import InsufficientBalance, InvalidState, NotFound, ValidationError
from skillpath.gamification.points_service import RelatedItem, debit_account, get_account, record_transaction
from skillpath.rewards.codes import generate_unique_redemption_code, normalize_redemption_code

logger = logging.getLogger(__name__)

REWARD_CATEGORIES = frozenset({"discount", "content", "certificate", "merchandise", "other"})
UNLIMITED = -1


# ---------------------------------------------------------------------------
# Redemption
# ---------------------------------------------------------------------------


async def get_reward(db: AsyncSession, reward_id: int) -> Reward | None:
    result = await db.execute(select(Reward).where(Reward.id == reward_id))
    return result.scalar_one_or_none()


async def _balance(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(select(PointsAccount.total_points).where(PointsAccount.user_id == user_id))
    return result.scalar_one_or_none() or 0


async def redeem_reward(
    db: AsyncSession,
    user_id: int,
    reward_id: int,
    now: datetime | None = None,
) -> Redemption:
    """Spend points on a reward.

    Checks, in order: reward exists, is active, is within its validity
    window, has stock, and the user's balance covers the cost. Any failure
    raises before or during the unit of work; the caller must not commit
    after an error.
    """
    settings = get_settings()
    now = now or datetime.now(timezone.utc)

    reward = await get_reward(db, reward_id)
    if reward is None:
        raise NotFound("Reward not found")
    if not reward.is_active:
        raise InvalidState("This reward is no longer active")
    if reward.valid_from is not None and reward.valid_from > now:
        raise InvalidState("This reward is not yet available")
    if reward.valid_until is not None and reward.valid_until < now:
        raise InvalidState("This reward has expired")
    if reward.quantity != UNLIMITED and reward.quantity <= 0:
        raise InvalidState("This reward is out of stock")

    account = await get_account(db, user_id)
    if account is None:
        raise NotFound("User points record not found")
    if account.total_points < reward.points_cost:
        raise InsufficientBalance(reward.points_cost, account.total_points)

    if reward.quantity != UNLIMITED:
        stock = await db.execute(
            update(Reward)
            .where(Reward.id == reward_id, Reward.quantity > 0)
            .values(quantity=Reward.quantity - 1)
            .execution_options(synchronize_session=False)
        )
        if stock.rowcount != 1:
            raise InvalidState("This reward is out of stock")

    if not await debit_account(db, user_id, reward.points_cost):
        raise InsufficientBalance(reward.points_cost, await _balance(db, user_id))

    await record_transaction(
        db,
        user_id,
        -reward.points_cost,
        "spent",
        "reward",
        f"Redeemed reward: {reward.name}",
        RelatedItem.of(reward.id, "Reward"),
        now,
    )

    code = await generate_unique_redemption_code(db, settings.redemption_code_attempts)
    redemption = Redemption(
        user_id=user_id,
        reward_id=reward.id,
        points_spent=reward.points_cost,
        redemption_code=code,
        redeemed_at=now,
        expires_at=now + timedelta(days=settings.redemption_expiry_days),
        status="completed",
        is_used=False,
    )
    db.add(redemption)
    await db.flush()

    # Guarded updates bypassed the identity map
    await db.refresh(account)
    await db.refresh(reward)
    redemption.reward = reward
    logger.info("User %s redeemed reward %s for %d points", user_id, reward.id, reward.points_cost)
    return redemption


async def get_redemption(db: AsyncSession, redemption_id: int) -> Redemption | None:
    result = await db.execute(select(Redemption).where(Redemption.id == redemption_id))
    return result.scalar_one_or_none()


async def mark_redemption_used(
    db: AsyncSession,
    redemption_id: int,
    now: datetime | None = None,
) -> Redemption:
    """One-way flip of ``is_used``. A second call is rejected."""
    now = now or datetime.now(timezone.utc)
    redemption = await get_redemption(db, redemption_id)
    if redemption is None:
        raise NotFound("Redemption not found")

    result = await db.execute(
        update(Redemption)
        .where(Redemption.id == redemption_id, Redemption.is_used.is_(False))
        .values(is_used=True, used_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState("This redemption code has already been used")

    await db.refresh(redemption)
    return redemption


async def get_redemption_by_code(db: AsyncSession, code: str) -> Redemption:
    """Read-only lookup. Callers decide what used or expired codes mean."""
    result = await db.execute(
        select(Redemption).where(Redemption.redemption_code == normalize_redemption_code(code))
    )
    redemption = result.scalar_one_or_none()
    if redemption is None:
        raise NotFound("Invalid redemption code")
    return redemption


async def verify_redemption_code(
    db: AsyncSession,
    code: str,
    now: datetime | None = None,
) -> Redemption:
    """Lookup that also rejects used and expired codes."""
    now = now or datetime.now(timezone.utc)
    redemption = await get_redemption_by_code(db, code)
    if redemption.is_used:
        raise InvalidState("This redemption code has already been used")
    if redemption.expires_at < now:
        raise InvalidState("This redemption code has expired")
    return redemption


async def get_user_redemptions(db: AsyncSession, user_id: int) -> list[Redemption]:
    """Redemption history, newest first."""
    result = await db.execute(
        select(Redemption)
        .where(Redemption.user_id == user_id)
        .order_by(Redemption.redeemed_at.desc(), Redemption.id.desc())
    )
    return list(result.unique().scalars().all())


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def _validate_reward_fields(data: dict[str, Any]) -> dict[str, Any]:
    if data.get("points_cost") is not None and data["points_cost"] < 1:
        raise ValidationError("Points cost must be at least 1", field="points_cost")
    if data.get("quantity") is not None and data["quantity"] < UNLIMITED:
        raise ValidationError("Quantity must be -1 (unlimited) or zero or more", field="quantity")
    if data.get("category") is not None and data["category"] not in REWARD_CATEGORIES:
        raise ValidationError(f"Unknown reward category: {data['category']}", field="category")
    return data


async def _check_name_free(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    stmt = select(Reward.id).where(Reward.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Reward.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        raise InvalidState(f'Reward with name "{name}" already exists')


async def create_reward(db: AsyncSession, created_by: int | None, **fields: Any) -> Reward:
    data = _validate_reward_fields(dict(fields))
    await _check_name_free(db, data["name"])

    now = datetime.now(timezone.utc)
    reward = Reward(
        name=data["name"],
        description=data["description"],
        points_cost=data["points_cost"],
        category=data.get("category") or "other",
        image_url=data.get("image_url"),
        code=data.get("code"),
        valid_from=data.get("valid_from") or now,
        valid_until=data.get("valid_until"),
        quantity=UNLIMITED if data.get("quantity") is None else data["quantity"],
        is_active=bool(data.get("is_active", True)),
        created_by=created_by,
        created_at=now,
    )
    if reward.valid_until is not None and reward.valid_until <= reward.valid_from:
        raise ValidationError("valid_until must be after valid_from", field="valid_until")
    db.add(reward)
    await db.flush()
    return reward


async def update_reward(db: AsyncSession, reward_id: int, **fields: Any) -> Reward:
    """Patch a catalog entry; only provided (non-None) fields change."""
    reward = await get_reward(db, reward_id)
    if reward is None:
        raise NotFound("Reward not found")

    data = _validate_reward_fields({k: v for k, v in fields.items() if v is not None})
    if data.get("name") and data["name"] != reward.name:
        await _check_name_free(db, data["name"], exclude_id=reward_id)

    for key in (
        "name", "description", "points_cost", "category", "image_url", "code",
        "valid_from", "valid_until", "quantity", "is_active",
    ):
        if key in data:
            setattr(reward, key, data[key])
    if reward.valid_until is not None and reward.valid_until <= reward.valid_from:
        raise ValidationError("valid_until must be after valid_from", field="valid_until")
    await db.flush()
    return reward


async def list_available_rewards(
    db: AsyncSession,
    category: str | None = None,
    now: datetime | None = None,
) -> list[Reward]:
    """Redeemable right now: active, inside the validity window and in stock."""
    now = now or datetime.now(timezone.utc)
    stmt = (
        select(Reward)
        .where(
            Reward.is_active.is_(True),
            Reward.valid_from <= now,
            or_(Reward.valid_until.is_(None), Reward.valid_until >= now),
            or_(Reward.quantity == UNLIMITED, Reward.quantity > 0),
        )
        .order_by(Reward.points_cost.asc(), Reward.id.asc())
    )
    if category:
        stmt = stmt.where(Reward.category == category)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_all_rewards(
    db: AsyncSession,
    is_active: bool | None = None,
    category: str | None = None,
) -> list[Reward]:
    """Admin catalog, newest first."""
    stmt = select(Reward).order_by(Reward.created_at.desc(), Reward.id.desc())
    if is_active is not None:
        stmt = stmt.where(Reward.is_active.is_(is_active))
    if category:
        stmt = stmt.where(Reward.category == category)
    result = await db.execute(stmt)
    return list(result.scalars().all())
