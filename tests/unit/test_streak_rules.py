"""Pure streak rules: day transitions, tag merging and bounded history."""

from datetime import date, datetime, timedelta, timezone

from skillpath.db.models import Streak
from skillpath.gamification.streak_service import apply_activity, local_day

TODAY = date(2026, 3, 10)


def _streak(current: int = 0, longest: int = 0, last: date | None = None, history=None) -> Streak:
    return Streak(
        user_id=1,
        current_streak=current,
        longest_streak=longest,
        last_activity_date=last,
        history=history or [],
    )


class TestApplyActivity:
    def test_first_activity_starts_streak(self):
        streak = _streak()
        assert apply_activity(streak, TODAY, ["login"], 30) is True
        assert streak.current_streak == 1
        assert streak.longest_streak == 1
        assert streak.last_activity_date == TODAY
        assert streak.history == [{"day": "2026-03-10", "activities": ["login"]}]

    def test_same_day_merges_tags(self):
        streak = _streak()
        apply_activity(streak, TODAY, ["login"], 30)
        assert apply_activity(streak, TODAY, ["video_watch", "login"], 30) is False
        assert streak.current_streak == 1
        assert streak.history == [{"day": "2026-03-10", "activities": ["login", "video_watch"]}]

    def test_consecutive_day_increments(self):
        streak = _streak(current=4, longest=4, last=TODAY - timedelta(days=1))
        assert apply_activity(streak, TODAY, ["quiz"], 30) is True
        assert streak.current_streak == 5
        assert streak.longest_streak == 5

    def test_gap_resets_but_keeps_longest(self):
        streak = _streak(current=5, longest=9, last=TODAY - timedelta(days=2))
        assert apply_activity(streak, TODAY, ["comment"], 30) is True
        assert streak.current_streak == 1
        assert streak.longest_streak == 9

    def test_zero_counter_after_yesterday_restarts_at_one(self):
        streak = _streak(current=0, longest=3, last=TODAY - timedelta(days=1))
        apply_activity(streak, TODAY, ["login"], 30)
        assert streak.current_streak == 1

    def test_zero_counter_same_day_is_repaired(self):
        streak = _streak(
            current=0,
            longest=0,
            last=TODAY,
            history=[{"day": "2026-03-10", "activities": ["login"]}],
        )
        assert apply_activity(streak, TODAY, ["other"], 30) is False
        assert streak.current_streak == 1
        assert streak.longest_streak == 1

    def test_history_is_bounded_oldest_first(self):
        streak = _streak()
        start = TODAY - timedelta(days=4)
        for offset in range(5):
            apply_activity(streak, start + timedelta(days=offset), ["login"], 3)
        assert streak.current_streak == 5
        assert [entry["day"] for entry in streak.history] == ["2026-03-08", "2026-03-09", "2026-03-10"]

    def test_longest_never_below_current(self):
        streak = _streak()
        for offset in range(3):
            apply_activity(streak, TODAY + timedelta(days=offset), ["login"], 30)
            assert streak.longest_streak >= streak.current_streak


class TestLocalDay:
    def test_utc(self):
        assert local_day(datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc), "UTC") == TODAY

    def test_naive_is_treated_as_utc(self):
        assert local_day(datetime(2026, 3, 10, 0, 1), "UTC") == TODAY
