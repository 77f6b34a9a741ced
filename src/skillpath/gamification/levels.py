"""Level curve and level computation.

Each level ``n`` requires ``round(100 * n^1.5)`` points beyond the start of
that level. Points carried past a threshold roll into the next level.
These values MUST match the frontend progress bar exactly.
"""

from __future__ import annotations

import math
from typing import Protocol

BASE_LEVEL_POINTS = 100
LEVEL_EXPONENT = 1.5


class LevelState(Protocol):
    level: int
    current_level_points: int
    points_to_next_level: int


def points_to_next_level(level: int) -> int:
    """Points needed to clear ``level``. Rounds half up like the frontend's Math.round."""
    return math.floor(BASE_LEVEL_POINTS * level**LEVEL_EXPONENT + 0.5)


def settle_levels(state: LevelState) -> list[int]:
    """Level up while the carried points cover the threshold.

    Returns the list of levels reached, in order (empty if no level-up).
    The loop is bounded by the points held: every iteration consumes a
    strictly positive threshold.
    """
    crossed: list[int] = []
    while state.current_level_points >= state.points_to_next_level:
        state.current_level_points -= state.points_to_next_level
        state.level += 1
        state.points_to_next_level = points_to_next_level(state.level)
        crossed.append(state.level)
    return crossed


def cumulative_points_for_level(level: int) -> int:
    """Total points required to reach ``level`` from zero."""
    return sum(points_to_next_level(n) for n in range(1, level))


def level_table(max_level: int = 20) -> list[dict]:
    """Level definitions for display: per-level requirement and cumulative total."""
    return [
        {
            "level": n,
            "points_required": points_to_next_level(n),
            "cumulative": cumulative_points_for_level(n),
        }
        for n in range(1, max_level + 1)
    ]
