"""Streak persistence: daily touches, refresh and leaderboard lookups."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from skillpath.gamification.streak_service import (
    get_or_create_streak,
    get_streak,
    get_streaks_for_users,
    refresh_streak,
    touch_streak,
)
from skillpath.users.service import sync_user

MORNING = datetime(2026, 4, 6, 8, 0, tzinfo=timezone.utc)


class TestTouchStreak:
    @pytest.mark.asyncio
    async def test_consecutive_days(self, db_session, learner):
        for n in range(3):
            update = await touch_streak(db_session, learner.id, ["login"], MORNING + timedelta(days=n))
            assert update.changed is True
        await db_session.commit()

        streak = await get_streak(db_session, learner.id)
        assert streak.current_streak == 3
        assert streak.longest_streak == 3
        assert streak.last_activity_date == date(2026, 4, 8)
        assert update.milestone == 3

    @pytest.mark.asyncio
    async def test_same_day_reports_no_change(self, db_session, learner):
        await touch_streak(db_session, learner.id, ["login"], MORNING)
        update = await touch_streak(db_session, learner.id, ["quiz"], MORNING + timedelta(hours=10))
        assert update.changed is False
        assert update.streak.history == [{"day": "2026-04-06", "activities": ["login", "quiz"]}]

    @pytest.mark.asyncio
    async def test_gap_resets(self, db_session, learner):
        await touch_streak(db_session, learner.id, ["login"], MORNING)
        await touch_streak(db_session, learner.id, ["login"], MORNING + timedelta(days=1))
        update = await touch_streak(db_session, learner.id, ["login"], MORNING + timedelta(days=4))
        assert update.streak.current_streak == 1
        assert update.streak.longest_streak == 2
        assert update.milestone is None


class TestRefreshStreak:
    @pytest.mark.asyncio
    async def test_repairs_empty_record(self, db_session, learner):
        await get_or_create_streak(db_session, learner.id)
        streak = await refresh_streak(db_session, learner.id, MORNING)
        assert streak.current_streak == 1
        assert streak.history == [{"day": "2026-04-06", "activities": ["login"]}]

    @pytest.mark.asyncio
    async def test_does_not_advance_existing_day(self, db_session, learner):
        await touch_streak(db_session, learner.id, ["video_watch"], MORNING)
        streak = await refresh_streak(db_session, learner.id, MORNING + timedelta(hours=2))
        assert streak.current_streak == 1
        assert streak.history == [{"day": "2026-04-06", "activities": ["video_watch"]}]


class TestStreakLookup:
    @pytest.mark.asyncio
    async def test_streaks_for_users(self, db_session, learner):
        other, _ = await sync_user(db_session, 3, "other")
        await touch_streak(db_session, learner.id, ["login"], MORNING)
        await get_or_create_streak(db_session, other.id)

        streaks = await get_streaks_for_users(db_session, [learner.id, other.id, 999])
        assert {s.user_id: s.current_streak for s in streaks} == {learner.id: 1, other.id: 0}
        assert await get_streaks_for_users(db_session, []) == []
