"""Best-effort Redis pub/sub notifications for gamification events."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

logger = logging.getLogger(__name__)

EVENT_NAMES = frozenset({
    "level_up",
    "badge_earned",
    "challenge_completed",
    "streak_milestone",
    "reward_redeemed",
})


def make_event(name: str, user_id: int, **payload: Any) -> dict[str, Any]:
    """Build an event dict; ``name`` selects the ``pubsub:<name>`` channel."""
    if name not in EVENT_NAMES:
        msg = f"Unknown gamification event: {name}"
        raise ValueError(msg)
    return {"event": name, "user_id": user_id, **payload}


async def publish_events(redis: object, events: Iterable[dict[str, Any]]) -> int:
    """Publish events after the unit of work committed.

    Failures are logged and swallowed; returns the number published.
    """
    if redis is None:
        return 0
    published = 0
    for event in events:
        try:
            await redis.publish(  # type: ignore[attr-defined]
                f"pubsub:{event['event']}",
                json.dumps(event, default=str),
            )
            published += 1
        except Exception:
            logger.warning("Failed to publish %s notification", event.get("event"), exc_info=True)
    return published
