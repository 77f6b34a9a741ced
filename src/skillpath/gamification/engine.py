"""Gamification engine: the award graph behind every point, badge and streak.

One public call is one unit of work on the session; the caller commits and
then publishes the collected events. Internally each call drains a work
queue of point credits and badge grants:

    credit --(levels crossed)--> level badges
    badge  --(points_awarded)--> bonus credit
    challenge completed -------> bonus credit + reward badge

A badge is granted at most once per user, so the queue always empties.
The streak is touched once per top-level call; bonus credits produced
inside the cascade never touch it and never advance challenges.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.config import get_settings
from skillpath.db.models import (
    Badge,
    ChallengeProgress,
    PointsAccount,
    PointTransaction,
    Streak,
    User,
)
from skillpath.exceptions import NotFound
from skillpath.gamification.badge_service import (
    find_badges,
    get_badge,
    get_badge_by_name,
    grant_badge,
    has_badge,
)
from skillpath.gamification.challenge_service import advance_progress, assign_active_challenges
from skillpath.gamification.criteria import ActivityCount, LevelReached, StreakReached
from skillpath.gamification.events import make_event, publish_events
from skillpath.gamification.points_service import (
    RelatedItem,
    credit_account,
    get_or_create_account,
    validate_award,
)
from skillpath.gamification.streak_service import get_or_create_streak, touch_streak

logger = logging.getLogger(__name__)


@dataclass
class AwardOutcome:
    """Everything one engine call changed for a user."""

    user_id: int
    account: PointsAccount | None = None
    streak: Streak | None = None
    transactions: list[PointTransaction] = field(default_factory=list)
    levels_crossed: list[int] = field(default_factory=list)
    badges: list[Badge] = field(default_factory=list)
    completed_challenges: list[ChallengeProgress] = field(default_factory=list)
    events: list[dict[str, Any]] = field(default_factory=list)

    @property
    def points_awarded(self) -> int:
        return sum(t.amount for t in self.transactions)

    def extend(self, other: AwardOutcome) -> AwardOutcome:
        self.account = other.account or self.account
        self.streak = other.streak or self.streak
        self.transactions += other.transactions
        self.levels_crossed += other.levels_crossed
        self.badges += other.badges
        self.completed_challenges += other.completed_challenges
        self.events += other.events
        return self


@dataclass
class BadgeOutcome:
    badge: Badge
    already_awarded: bool
    award: AwardOutcome


@dataclass
class _Credit:
    amount: int
    category: str
    description: str
    related_item: RelatedItem | None = None
    kind: str = "earned"


@dataclass
class _Grant:
    badge: Badge


class _Cascade:
    """Work queue for one top-level call."""

    def __init__(self, user_id: int) -> None:
        self.outcome = AwardOutcome(user_id=user_id)
        self.queue: deque[_Credit | _Grant] = deque()
        self.seen_badges: set[int] = set()

    def grant(self, badges: list[Badge]) -> None:
        for badge in badges:
            if badge.id not in self.seen_badges:
                self.seen_badges.add(badge.id)
                self.queue.append(_Grant(badge))


class GamificationEngine:
    """Single entry point for awards; owns the cascade, not the transaction."""

    def __init__(self, db: AsyncSession, redis: object = None) -> None:
        self.db = db
        self.redis = redis
        self.settings = get_settings()
        self.events: list[dict[str, Any]] = []

    # -- public operations -------------------------------------------------

    async def award_points(
        self,
        user_id: int,
        amount: int,
        category: str,
        description: str,
        related_item: RelatedItem | None = None,
        *,
        streak_tags: list[str] | None = None,
        update_streak: bool = True,
        now: datetime | None = None,
    ) -> AwardOutcome:
        """Credit points and run every side effect of the award.

        Touches the streak once (tag ``other`` unless given; skipped with
        ``update_streak=False``) and advances challenges whose activity type
        equals ``category``.
        """
        validate_award(amount, category)
        now = now or datetime.now(timezone.utc)
        await self._require_user(user_id)

        cascade = _Cascade(user_id)
        cascade.queue.append(_Credit(amount, category, description, related_item))
        await self._drain(cascade, now)
        if update_streak:
            await self._touch_streak(cascade, streak_tags or ["other"], now)
        await self._advance(cascade, category, 1, related_item, now)
        return await self._finish(cascade, now)

    async def award_badge(
        self,
        user_id: int,
        badge_id: int,
        now: datetime | None = None,
    ) -> BadgeOutcome:
        """Grant one badge by id. Re-awarding is a no-op reported as such."""
        now = now or datetime.now(timezone.utc)
        await self._require_user(user_id)
        badge = await get_badge(self.db, badge_id)
        if badge is None:
            raise NotFound("Badge not found")

        cascade = _Cascade(user_id)
        if await has_badge(self.db, user_id, badge.id):
            return BadgeOutcome(badge=badge, already_awarded=True, award=cascade.outcome)

        cascade.grant([badge])
        outcome = await self._finish(cascade, now)
        already = badge not in outcome.badges
        return BadgeOutcome(badge=badge, already_awarded=already, award=outcome)

    async def award_badges_for(
        self,
        user_id: int,
        criteria: ActivityCount | LevelReached | StreakReached,
        now: datetime | None = None,
    ) -> AwardOutcome:
        """Grant every badge whose criteria matches."""
        now = now or datetime.now(timezone.utc)
        cascade = _Cascade(user_id)
        cascade.grant(await find_badges(self.db, criteria))
        return await self._finish(cascade, now)

    async def record_activity(
        self,
        user_id: int,
        tags: list[str],
        activity_type: str | None = None,
        increment: int = 1,
        related_item: RelatedItem | None = None,
        now: datetime | None = None,
    ) -> AwardOutcome:
        """Activity without points: touch the streak, optionally advance challenges."""
        now = now or datetime.now(timezone.utc)
        await self._require_user(user_id)

        cascade = _Cascade(user_id)
        await self._touch_streak(cascade, tags, now)
        if activity_type:
            await self._advance(cascade, activity_type, increment, related_item, now)
        return await self._finish(cascade, now)

    async def update_challenge_progress(
        self,
        user_id: int,
        activity_type: str,
        increment: int = 1,
        related_item: RelatedItem | None = None,
        now: datetime | None = None,
    ) -> AwardOutcome:
        """Advance challenges and grant the rewards of those that complete."""
        now = now or datetime.now(timezone.utc)
        cascade = _Cascade(user_id)
        await self._advance(cascade, activity_type, increment, related_item, now)
        return await self._finish(cascade, now)

    async def initialize_user(self, user_id: int, now: datetime | None = None) -> AwardOutcome:
        """Seed a newly registered user. Safe to call more than once."""
        now = now or datetime.now(timezone.utc)
        await self._require_user(user_id)

        cascade = _Cascade(user_id)
        cascade.outcome.account = await get_or_create_account(self.db, user_id)
        cascade.outcome.streak = await get_or_create_streak(self.db, user_id)
        assigned = await assign_active_challenges(self.db, user_id, now)

        welcome = await get_badge_by_name(self.db, self.settings.welcome_badge_name)
        if welcome is not None:
            cascade.grant([welcome])
        outcome = await self._finish(cascade, now)
        logger.info("Initialized gamification for user %s (%d challenges)", user_id, assigned)
        return outcome

    async def publish(self) -> int:
        """Publish collected events; call only after the session committed."""
        events, self.events = self.events, []
        return await publish_events(self.redis, events)

    # -- cascade -----------------------------------------------------------

    async def _require_user(self, user_id: int) -> None:
        result = await self.db.execute(select(User.id).where(User.id == user_id))
        if result.scalar_one_or_none() is None:
            raise NotFound("User not found")

    async def _drain(self, cascade: _Cascade, now: datetime) -> None:
        user_id = cascade.outcome.user_id
        while cascade.queue:
            item = cascade.queue.popleft()

            if isinstance(item, _Credit):
                result = await credit_account(
                    self.db,
                    user_id,
                    item.amount,
                    item.category,
                    item.description,
                    item.related_item,
                    kind=item.kind,
                    now=now,
                )
                cascade.outcome.account = result.account
                cascade.outcome.transactions.append(result.transaction)
                cascade.outcome.levels_crossed += result.levels_crossed
                for level in result.levels_crossed:
                    cascade.outcome.events.append(make_event("level_up", user_id, level=level))
                    cascade.grant(await find_badges(self.db, LevelReached(level)))
                continue

            badge = item.badge
            award = await grant_badge(self.db, user_id, badge, self.settings.displayed_badge_limit, now)
            if award is None:
                continue
            cascade.outcome.badges.append(badge)
            cascade.outcome.events.append(
                make_event(
                    "badge_earned",
                    user_id,
                    badge_id=badge.id,
                    badge_name=badge.name,
                    points=badge.points_awarded,
                )
            )
            logger.info("User %s earned badge %s", user_id, badge.name)
            if badge.points_awarded > 0:
                cascade.queue.append(
                    _Credit(
                        badge.points_awarded,
                        "other",
                        f'Earned badge: "{badge.name}"',
                        RelatedItem.of(badge.id, "Badge"),
                        kind="bonus",
                    )
                )

    async def _touch_streak(self, cascade: _Cascade, tags: list[str], now: datetime) -> None:
        user_id = cascade.outcome.user_id
        touched = await touch_streak(self.db, user_id, tags, now)
        cascade.outcome.streak = touched.streak
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_activity_at=now)
            .execution_options(synchronize_session=False)
        )
        if touched.changed and touched.milestone is not None:
            cascade.grant(await find_badges(self.db, StreakReached(touched.milestone)))
            cascade.outcome.events.append(make_event("streak_milestone", user_id, days=touched.milestone))
        await self._drain(cascade, now)

    async def _advance(
        self,
        cascade: _Cascade,
        activity_type: str,
        increment: int,
        related_item: RelatedItem | None,
        now: datetime,
    ) -> None:
        user_id = cascade.outcome.user_id
        completed = await advance_progress(self.db, user_id, activity_type, increment, related_item, now)
        for row in completed:
            challenge = row.challenge
            cascade.outcome.completed_challenges.append(row)
            cascade.outcome.events.append(
                make_event(
                    "challenge_completed",
                    user_id,
                    challenge_id=challenge.id,
                    title=challenge.title,
                    reward_points=challenge.reward_points,
                )
            )
            if challenge.reward_points > 0:
                cascade.queue.append(
                    _Credit(
                        challenge.reward_points,
                        "other",
                        f"Completed challenge: {challenge.title}",
                        RelatedItem.of(challenge.id, "Challenge"),
                        kind="bonus",
                    )
                )
            if challenge.reward_badge_id is not None:
                badge = await get_badge(self.db, challenge.reward_badge_id)
                if badge is not None:
                    cascade.grant([badge])
        await self._drain(cascade, now)

    async def _finish(self, cascade: _Cascade, now: datetime) -> AwardOutcome:
        await self._drain(cascade, now)
        self.events += cascade.outcome.events
        return cascade.outcome


# ---------------------------------------------------------------------------
# Ledger-derived counters
# ---------------------------------------------------------------------------


async def count_earnings(db: AsyncSession, user_id: int, category: str, item_type: str) -> int:
    """Number of distinct content items of one type the user has earned points on."""
    result = await db.execute(
        select(func.count(distinct(PointTransaction.related_item_id)))
        .where(
            PointTransaction.user_id == user_id,
            PointTransaction.kind == "earned",
            PointTransaction.category == category,
            PointTransaction.related_item_type == item_type,
        )
    )
    return result.scalar_one()
