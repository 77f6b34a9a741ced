"""Gamification API endpoints: profile, badges, streaks, challenges, leaderboard and admin."""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.dependencies import get_current_user, require_admin
from skillpath.config import get_settings
from skillpath.database import get_session
from skillpath.db.models import (
    Badge,
    BadgeAward,
    Challenge,
    ChallengeProgress,
    PointsAccount,
    PointTransaction,
    Redemption,
    Streak,
    User,
)
from skillpath.dependencies import get_engine
from skillpath.gamification import badge_service, challenge_service
from skillpath.gamification.engine import AwardOutcome, GamificationEngine
from skillpath.gamification.levels import level_table
from skillpath.gamification.points_service import (
    CATEGORY_COLUMNS,
    get_leaderboard,
    get_or_create_account,
    get_points_history,
    get_rank,
)
from skillpath.gamification.schemas import (
    AdminStatsResponse,
    AllLevelsResponse,
    AwardBadgeRequest,
    AwardBadgeResponse,
    AwardOutcomeResponse,
    AwardPointsRequest,
    BadgeCount,
    BadgeCreateRequest,
    BadgeResponse,
    BadgeUpdateRequest,
    ChallengeCount,
    ChallengeCreateRequest,
    ChallengeProgressResponse,
    ChallengeResponse,
    ChallengeUpdateRequest,
    DisplayedBadgesRequest,
    DisplayedBadgesResponse,
    EarnedBadgeResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    LevelEntry,
    PointsHistoryResponse,
    PointsResponse,
    ProfileResponse,
    StreakDay,
    StreakLeaderboardEntry,
    StreakLeaderboardRequest,
    StreakLeaderboardResponse,
    StreakResponse,
    TransactionResponse,
    UserBadgesResponse,
    UserSummary,
)
from skillpath.gamification.streak_service import get_streak, get_streaks_for_users, refresh_streak

router = APIRouter(prefix="/api/v1/gamification", tags=["Gamification"])


# ── Response builders ──


def badge_response(badge: Badge) -> BadgeResponse:
    return BadgeResponse(
        id=badge.id,
        name=badge.name,
        description=badge.description,
        icon=badge.icon,
        category=badge.category,
        level=badge.level,
        points_awarded=badge.points_awarded,
        criteria=badge.criteria,
        is_hidden=badge.is_hidden,
    )


def _earned(award: BadgeAward) -> EarnedBadgeResponse:
    return EarnedBadgeResponse(badge=badge_response(award.badge), earned_at=award.earned_at, displayed=award.displayed)


def _points(account: PointsAccount) -> PointsResponse:
    return PointsResponse(
        total_points=account.total_points,
        level=account.level,
        current_level_points=account.current_level_points,
        points_to_next_level=account.points_to_next_level,
        categories={category: getattr(account, column) for category, column in CATEGORY_COLUMNS.items()},
    )


def _transaction(entry: PointTransaction) -> TransactionResponse:
    return TransactionResponse(
        id=entry.id,
        amount=entry.amount,
        kind=entry.kind,
        category=entry.category,
        description=entry.description,
        related_item_id=entry.related_item_id,
        related_item_type=entry.related_item_type,
        created_at=entry.created_at,
    )


def _streak(streak: Streak | None) -> StreakResponse:
    if streak is None:
        return StreakResponse(current_streak=0, longest_streak=0)
    return StreakResponse(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_activity_date=streak.last_activity_date,
        history=[StreakDay(day=entry["day"], activities=entry.get("activities", [])) for entry in streak.history or []],
    )


def _challenge(challenge: Challenge) -> ChallengeResponse:
    return ChallengeResponse(
        id=challenge.id,
        title=challenge.title,
        description=challenge.description,
        type=challenge.type,
        activity_type=challenge.activity_type,
        target_count=challenge.target_count,
        specific_items=challenge.specific_items or [],
        reward_points=challenge.reward_points,
        reward_badge_id=challenge.reward_badge_id,
        start_date=challenge.start_date,
        end_date=challenge.end_date,
        is_active=challenge.is_active,
    )


def _progress(row: ChallengeProgress) -> ChallengeProgressResponse:
    return ChallengeProgressResponse(
        challenge=_challenge(row.challenge),
        progress=row.progress,
        is_completed=row.is_completed,
        completed_at=row.completed_at,
    )


def _user(user: User) -> UserSummary:
    return UserSummary(id=user.id, username=user.username, full_name=user.full_name, avatar_url=user.avatar_url)


def outcome_response(outcome: AwardOutcome) -> AwardOutcomeResponse:
    return AwardOutcomeResponse(
        user_id=outcome.user_id,
        points_awarded=outcome.points_awarded,
        total_points=outcome.account.total_points if outcome.account else None,
        level=outcome.account.level if outcome.account else None,
        levels_crossed=outcome.levels_crossed,
        badges_earned=[badge_response(b) for b in outcome.badges],
        challenges_completed=[row.challenge_id for row in outcome.completed_challenges],
    )


# ── Public endpoints ──


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Get the level curve."""
    return AllLevelsResponse(levels=[LevelEntry(**entry) for entry in level_table()])


# ── Authenticated endpoints ──


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Account, badges, streak, open challenges, recent transactions and rank."""
    settings = get_settings()
    account = await get_or_create_account(db, user.id)
    await db.commit()

    awards = await badge_service.get_user_badges(db, user.id)
    by_id = {a.badge_id: a.badge for a in awards}
    streak = await get_streak(db, user.id)
    challenges = await challenge_service.list_user_challenges(db, user.id, "active")
    recent, _ = await get_points_history(db, user.id, 1, settings.profile_recent_transactions)

    return ProfileResponse(
        user=_user(user),
        points=_points(account),
        badges=[_earned(a) for a in awards],
        displayed_badges=[badge_response(by_id[b]) for b in user.displayed_badge_ids or [] if b in by_id],
        streak=_streak(streak),
        challenges=[_progress(row) for row in challenges],
        recent_transactions=[_transaction(t) for t in recent],
        rank=await get_rank(db, user.id),
    )


@router.get("/badges", response_model=UserBadgesResponse)
async def get_my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get current user's earned badges."""
    awards = await badge_service.get_user_badges(db, user.id)
    total_available = await db.execute(
        select(func.count()).select_from(Badge).where(Badge.is_hidden.is_(False))
    )
    return UserBadgesResponse(
        earned=[_earned(a) for a in awards],
        displayed_badge_ids=list(user.displayed_badge_ids or []),
        total_earned=len(awards),
        total_available=total_available.scalar_one(),
    )


@router.patch("/displayed-badges", response_model=DisplayedBadgesResponse)
async def update_displayed_badges(
    body: DisplayedBadgesRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Choose which earned badges appear on the profile."""
    ids = await badge_service.set_displayed_badges(
        db, user.id, body.badge_ids, get_settings().displayed_badge_limit
    )
    await db.commit()
    return DisplayedBadgesResponse(displayed_badge_ids=ids)


@router.get("/points-history", response_model=PointsHistoryResponse)
async def get_my_points_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get ledger history (paginated, newest first)."""
    entries, total = await get_points_history(db, user.id, page, limit)
    return PointsHistoryResponse(
        entries=[_transaction(e) for e in entries],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/streak", response_model=StreakResponse)
async def get_my_streak(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get current streak info."""
    return _streak(await get_streak(db, user.id))


@router.post("/streak/refresh", response_model=StreakResponse)
async def refresh_my_streak(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Repair the streak record: counter at least 1 and today in history."""
    streak = await refresh_streak(db, user.id)
    await db.commit()
    return _streak(streak)


@router.get("/challenges", response_model=list[ChallengeProgressResponse])
async def get_my_challenges(
    status: str = Query("active"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Current user's challenges: active, completed or all."""
    rows = await challenge_service.list_user_challenges(db, user.id, status)
    return [_progress(row) for row in rows]


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Accounts ordered by points, then level."""
    rows, total = await get_leaderboard(db, page, limit)
    offset = (page - 1) * limit
    return LeaderboardResponse(
        entries=[
            LeaderboardEntry(
                rank=offset + i + 1,
                user=_user(row_user),
                total_points=account.total_points,
                level=account.level,
            )
            for i, (account, row_user) in enumerate(rows)
        ],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/leaderboard/streaks", response_model=StreakLeaderboardResponse)
async def leaderboard_streaks(
    body: StreakLeaderboardRequest,
    _viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Streak counters for the users shown on a leaderboard page."""
    streaks = await get_streaks_for_users(db, body.user_ids)
    return StreakLeaderboardResponse(
        streaks=[
            StreakLeaderboardEntry(
                user_id=s.user_id,
                current_streak=s.current_streak,
                longest_streak=s.longest_streak,
            )
            for s in streaks
        ]
    )


# ── Admin: badges ──


@router.post("/badges", response_model=BadgeResponse, status_code=201)
async def create_badge(
    body: BadgeCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    badge = await badge_service.create_badge(db, **body.model_dump())
    await db.commit()
    return badge_response(badge)


@router.put("/badges/{badge_id}", response_model=BadgeResponse)
async def update_badge(
    badge_id: int,
    body: BadgeUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    badge = await badge_service.update_badge(db, badge_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return badge_response(badge)


@router.delete("/badges/{badge_id}", status_code=204)
async def delete_badge(
    badge_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    await badge_service.delete_badge(db, badge_id)
    await db.commit()
    return Response(status_code=204)


@router.get("/admin/badges", response_model=list[BadgeResponse])
async def admin_list_badges(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """All badge definitions, hidden ones included."""
    return [badge_response(b) for b in await badge_service.list_badges(db)]


# ── Admin: challenges ──


@router.post("/challenges", response_model=ChallengeResponse, status_code=201)
async def create_challenge(
    body: ChallengeCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Create a challenge; active ones are assigned to every user."""
    challenge = await challenge_service.create_challenge(db, **body.model_dump())
    await db.commit()
    return _challenge(challenge)


@router.put("/challenges/{challenge_id}", response_model=ChallengeResponse)
async def update_challenge(
    challenge_id: int,
    body: ChallengeUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    challenge = await challenge_service.update_challenge(db, challenge_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return _challenge(challenge)


@router.delete("/challenges/{challenge_id}", status_code=204)
async def delete_challenge(
    challenge_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    await challenge_service.delete_challenge(db, challenge_id)
    await db.commit()
    return Response(status_code=204)


@router.get("/admin/challenges", response_model=list[ChallengeResponse])
async def admin_list_challenges(
    status: str = Query("all"),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return [_challenge(c) for c in await challenge_service.list_challenges(db, status)]


# ── Admin: direct awards ──


@router.post("/award-badge", response_model=AwardBadgeResponse)
async def admin_award_badge(
    body: AwardBadgeRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    engine: GamificationEngine = Depends(get_engine),
):
    result = await engine.award_badge(body.user_id, body.badge_id)
    await db.commit()
    await engine.publish()
    return AwardBadgeResponse(
        badge=badge_response(result.badge),
        already_awarded=result.already_awarded,
        outcome=outcome_response(result.award),
    )


@router.post("/award-points", response_model=AwardOutcomeResponse)
async def admin_award_points(
    body: AwardPointsRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    engine: GamificationEngine = Depends(get_engine),
):
    outcome = await engine.award_points(body.user_id, body.amount, body.category, body.description)
    await db.commit()
    await engine.publish()
    return outcome_response(outcome)


@router.get("/admin/stats", response_model=AdminStatsResponse)
async def admin_stats(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Platform-wide totals for the admin dashboard."""

    async def scalar(stmt) -> int:
        return (await db.execute(stmt)).scalar_one() or 0

    award_count = func.count(BadgeAward.id).label("award_count")
    top_badges = await db.execute(
        select(Badge.id, Badge.name, award_count)
        .join(BadgeAward, BadgeAward.badge_id == Badge.id)
        .group_by(Badge.id, Badge.name)
        .order_by(desc("award_count"), Badge.id)
        .limit(5)
    )

    completions = func.count(ChallengeProgress.id).label("completions")
    top_challenges = await db.execute(
        select(Challenge.id, Challenge.title, completions)
        .join(ChallengeProgress, ChallengeProgress.challenge_id == Challenge.id)
        .where(ChallengeProgress.is_completed.is_(True))
        .group_by(Challenge.id, Challenge.title)
        .order_by(desc("completions"), Challenge.id)
        .limit(5)
    )

    by_category = await db.execute(
        select(PointTransaction.category, func.sum(PointTransaction.amount))
        .where(PointTransaction.amount > 0)
        .group_by(PointTransaction.category)
    )

    return AdminStatsResponse(
        total_users=await scalar(select(func.count()).select_from(User)),
        total_points_awarded=await scalar(
            select(func.coalesce(func.sum(PointTransaction.amount), 0)).where(PointTransaction.amount > 0)
        ),
        total_badges_awarded=await scalar(select(func.count()).select_from(BadgeAward)),
        total_challenges_completed=await scalar(
            select(func.count()).select_from(ChallengeProgress).where(ChallengeProgress.is_completed.is_(True))
        ),
        total_redemptions=await scalar(select(func.count()).select_from(Redemption)),
        top_badges=[BadgeCount(badge_id=r[0], name=r[1], count=r[2]) for r in top_badges],
        top_challenges=[ChallengeCount(challenge_id=r[0], title=r[1], completions=r[2]) for r in top_challenges],
        points_by_category={r[0]: int(r[1]) for r in by_category},
    )
