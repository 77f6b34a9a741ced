"""Best-effort activity hooks on top of the seeded badge catalog."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from skillpath.db.models import PointTransaction, User
from skillpath.gamification import engine as engine_module
from skillpath.gamification import hooks
from skillpath.gamification.engine import GamificationEngine
from skillpath.gamification.seed import BADGE_SEED_DATA, seed_badges
from skillpath.users.service import sync_user


@pytest_asyncio.fixture
async def member(db_session, learner):
    """Seeded catalog and a registered learner (Welcome badge, 50 points)."""
    assert await seed_badges(db_session) == len(BADGE_SEED_DATA)
    outcome = await hooks.on_user_registered(db_session, learner.id)
    await db_session.commit()
    assert [b.name for b in outcome.badges] == ["Welcome"]
    return learner


def _badge_names(outcome) -> list[str]:
    return [b.name for b in outcome.badges]


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session):
        assert await seed_badges(db_session) == len(BADGE_SEED_DATA)
        assert await seed_badges(db_session) == 0


class TestContentHooks:
    @pytest.mark.asyncio
    async def test_first_blog_earns_blogger(self, db_session, member):
        outcome = await hooks.on_blog_published(db_session, member.id, 11, "Why tests matter")
        assert _badge_names(outcome) == ["Blogger"]
        assert outcome.points_awarded == 150 + 150
        assert outcome.account.blog_points == 150

        second = await hooks.on_blog_published(db_session, member.id, 12, "Part two")
        assert _badge_names(second) == []
        assert second.points_awarded == 150

    @pytest.mark.asyncio
    async def test_video_start_and_completion(self, db_session, member):
        outcome = await hooks.on_video_progress(
            db_session, member.id, 3, "Intro", first_watch=True, was_completed=False, progress=95
        )
        assert _badge_names(outcome) == ["Video Watcher"]
        assert outcome.points_awarded == 10 + 50 + 25
        assert outcome.account.video_watch_points == 35

    @pytest.mark.asyncio
    async def test_video_start_and_completion_touch_streak_once(self, db_session, member, monkeypatch):
        touches = []
        original = engine_module.touch_streak

        async def counting_touch(db, user_id, tags, now):
            touches.append(list(tags))
            return await original(db, user_id, tags, now)

        monkeypatch.setattr(engine_module, "touch_streak", counting_touch)
        outcome = await hooks.on_video_progress(
            db_session, member.id, 4, "Basics", first_watch=True, was_completed=False, progress=100
        )
        assert touches == [["video_watch"]]
        assert outcome.streak.current_streak == 1
        assert outcome.account.video_watch_points == 35

    @pytest.mark.asyncio
    async def test_video_completion_only_once(self, db_session, member):
        started = await hooks.on_video_progress(
            db_session, member.id, 3, "Intro", first_watch=True, was_completed=False, progress=10
        )
        assert started.points_awarded == 10 + 50

        finished = await hooks.on_video_progress(
            db_session, member.id, 3, "Intro", first_watch=False, was_completed=False, progress=92
        )
        assert finished.points_awarded == 25

        rewatch = await hooks.on_video_progress(
            db_session, member.id, 3, "Intro", first_watch=False, was_completed=True, progress=100
        )
        assert rewatch is None

    @pytest.mark.asyncio
    async def test_course_completion(self, db_session, member):
        outcome = await hooks.on_course_completed(db_session, member.id, 21, "Python basics")
        assert _badge_names(outcome) == ["Course Completer"]
        assert outcome.points_awarded == 300 + 200
        assert outcome.streak.history[-1]["activities"] == ["course_progress"]

    @pytest.mark.asyncio
    async def test_perfect_quiz(self, db_session, member):
        outcome = await hooks.on_quiz_passed(db_session, member.id, 5, "Loops", 100)
        assert _badge_names(outcome) == ["Quiz Master"]
        assert outcome.points_awarded == 100 + 150

        good = await hooks.on_quiz_passed(db_session, member.id, 6, "Functions", 80)
        assert good.points_awarded == 75
        assert good.transactions[0].description == "Completed Functions with 80.0% score"

    @pytest.mark.asyncio
    async def test_comment(self, db_session, member):
        outcome = await hooks.on_comment_posted(db_session, member.id, 99)
        assert _badge_names(outcome) == ["Social Butterfly"]
        assert outcome.points_awarded == 5 + 25

    @pytest.mark.asyncio
    async def test_login_touches_streak_without_points(self, db_session, member):
        outcome = await hooks.on_login(db_session, member.id)
        assert outcome.points_awarded == 0
        assert outcome.streak.current_streak == 1
        assert outcome.streak.history[-1]["activities"] == ["login"]


class TestBestEffort:
    @pytest.mark.asyncio
    async def test_unknown_user_returns_none(self, db_session):
        await seed_badges(db_session)
        assert await hooks.on_blog_published(db_session, 424242, 1, "Ghost post") is None

        count = await db_session.execute(select(func.count()).select_from(PointTransaction))
        assert count.scalar_one() == 0

    @pytest.mark.asyncio
    async def test_failure_keeps_primary_action(self, db_session, learner, monkeypatch):
        user_id = learner.id

        async def broken(self, *args, **kwargs):
            raise RuntimeError("points store unavailable")

        monkeypatch.setattr(GamificationEngine, "award_points", broken)

        # The caller's own write, made in the same session before the hook runs
        author, _ = await sync_user(db_session, 77, "author")
        assert await hooks.on_blog_published(db_session, user_id, 1, "Still published") is None
        await db_session.commit()

        result = await db_session.execute(select(User.username).where(User.id == 77))
        assert result.scalar_one() == "author"

    @pytest.mark.asyncio
    async def test_unknown_event_type(self, db_session, learner):
        with pytest.raises(ValueError, match="Unknown activity event"):
            await hooks.dispatch(db_session, "video_liked", learner.id, {})

    @pytest.mark.asyncio
    async def test_dispatch_routes_quiz(self, db_session, member):
        outcome = await hooks.dispatch(
            db_session, "quiz_passed", member.id, {"item_id": "8", "title": "Recursion", "score": 76}
        )
        assert outcome.points_awarded == 75
