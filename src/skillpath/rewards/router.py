"""Reward store API endpoints: catalog, redemption and code verification."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.dependencies import get_current_user, require_admin
from skillpath.database import get_session
from skillpath.db.models import PointsAccount, Redemption, Reward, User
from skillpath.dependencies import get_redis_dep
from skillpath.gamification.events import make_event, publish_events
from skillpath.rewards import service
from skillpath.rewards.schemas import (
    AdminRewardResponse,
    RedeemResponse,
    RedemptionResponse,
    RewardCreateRequest,
    RewardResponse,
    RewardUpdateRequest,
)

router = APIRouter(prefix="/api/v1/rewards", tags=["Rewards"])


def _reward(reward: Reward) -> RewardResponse:
    return RewardResponse(
        id=reward.id,
        name=reward.name,
        description=reward.description,
        points_cost=reward.points_cost,
        category=reward.category,
        image_url=reward.image_url,
        valid_from=reward.valid_from,
        valid_until=reward.valid_until,
        quantity=reward.quantity,
        is_active=reward.is_active,
    )


def _admin_reward(reward: Reward) -> AdminRewardResponse:
    return AdminRewardResponse(
        **_reward(reward).model_dump(),
        code=reward.code,
        created_by=reward.created_by,
        created_at=reward.created_at,
    )


def _redemption(redemption: Redemption) -> RedemptionResponse:
    return RedemptionResponse(
        id=redemption.id,
        user_id=redemption.user_id,
        reward=_reward(redemption.reward),
        points_spent=redemption.points_spent,
        redemption_code=redemption.redemption_code,
        redeemed_at=redemption.redeemed_at,
        expires_at=redemption.expires_at,
        status=redemption.status,
        is_used=redemption.is_used,
        used_at=redemption.used_at,
        reward_code=redemption.reward.code,
    )


# ── Learner endpoints ──


@router.get("/available", response_model=list[RewardResponse])
async def available_rewards(
    category: str | None = Query(None),
    _viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Rewards that can be redeemed right now, cheapest first."""
    return [_reward(r) for r in await service.list_available_rewards(db, category)]


@router.get("/history", response_model=list[RedemptionResponse])
async def redemption_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return [_redemption(r) for r in await service.get_user_redemptions(db, user.id)]


@router.post("/redeem/{reward_id}", response_model=RedeemResponse, status_code=201)
async def redeem(
    reward_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Spend points on a reward. Any failed check leaves no trace."""
    redemption = await service.redeem_reward(db, user.id, reward_id)
    await db.commit()

    balance = await db.execute(select(PointsAccount.total_points).where(PointsAccount.user_id == user.id))
    await publish_events(redis, [
        make_event(
            "reward_redeemed",
            user.id,
            reward_id=reward_id,
            redemption_id=redemption.id,
            points_spent=redemption.points_spent,
        )
    ])
    return RedeemResponse(redemption=_redemption(redemption), remaining_points=balance.scalar_one())


# ── Admin endpoints ──


@router.post("/", response_model=AdminRewardResponse, status_code=201)
async def create_reward(
    body: RewardCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    reward = await service.create_reward(db, admin.id, **body.model_dump())
    await db.commit()
    return _admin_reward(reward)


@router.patch("/{reward_id}", response_model=AdminRewardResponse)
async def update_reward(
    reward_id: int,
    body: RewardUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    reward = await service.update_reward(db, reward_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return _admin_reward(reward)


@router.get("/admin/all", response_model=list[AdminRewardResponse])
async def all_rewards(
    is_active: bool | None = Query(None),
    category: str | None = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return [_admin_reward(r) for r in await service.list_all_rewards(db, is_active, category)]


@router.get("/verify/{code}", response_model=RedemptionResponse)
async def verify_code(
    code: str,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Check a code presented by a learner: it must exist, be unused and unexpired."""
    return _redemption(await service.verify_redemption_code(db, code))


@router.patch("/mark-used/{redemption_id}", response_model=RedemptionResponse)
async def mark_used(
    redemption_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    redemption = await service.mark_redemption_used(db, redemption_id)
    await db.commit()
    return _redemption(redemption)
