"""Best-effort event publishing."""

import json
from unittest.mock import AsyncMock

import pytest

from skillpath.gamification.events import make_event, publish_events


class TestMakeEvent:
    def test_builds_payload(self):
        event = make_event("level_up", 7, level=3)
        assert event == {"event": "level_up", "user_id": 7, "level": 3}

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError, match="Unknown gamification event"):
            make_event("points_exploded", 7)


class TestPublishEvents:
    @pytest.mark.asyncio
    async def test_no_redis_is_a_noop(self):
        assert await publish_events(None, [make_event("level_up", 1, level=2)]) == 0

    @pytest.mark.asyncio
    async def test_publishes_to_event_channel(self):
        redis = AsyncMock()
        events = [
            make_event("badge_earned", 1, badge_id=4, badge_name="Blogger", points=150),
            make_event("level_up", 1, level=2),
        ]

        assert await publish_events(redis, events) == 2

        channel, body = redis.publish.await_args_list[0].args
        assert channel == "pubsub:badge_earned"
        assert json.loads(body)["badge_name"] == "Blogger"
        assert redis.publish.await_args_list[1].args[0] == "pubsub:level_up"

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self):
        redis = AsyncMock()
        redis.publish.side_effect = [ConnectionError("redis down"), 1]
        events = [make_event("level_up", 1, level=2), make_event("level_up", 1, level=3)]

        assert await publish_events(redis, events) == 1
