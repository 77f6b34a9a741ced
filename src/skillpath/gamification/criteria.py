"""Badge criteria as a small tagged variant.

Triggering components build a variant and look badges up by its canonical
tag, instead of formatting criteria strings by hand at every call site.

    LevelReached(5).tag                        -> "level:5"
    StreakReached(7).tag                       -> "streak:7"
    ActivityCount("blog", "publish", 1).tag    -> "blog:publish:1"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from skillpath.exceptions import ValidationError

_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass(frozen=True)
class LevelReached:
    level: int

    @property
    def tag(self) -> str:
        return f"level:{self.level}"


@dataclass(frozen=True)
class StreakReached:
    days: int

    @property
    def tag(self) -> str:
        return f"streak:{self.days}"


@dataclass(frozen=True)
class ActivityCount:
    activity: str
    verb: str
    count: int

    @property
    def tag(self) -> str:
        return f"{self.activity}:{self.verb}:{self.count}"


BadgeCriteria = Union[LevelReached, StreakReached, ActivityCount]


def _positive_int(raw: str, tag: str) -> int:
    if not raw.isdigit() or int(raw) < 1:
        raise ValidationError(f"Invalid badge criteria {tag!r}: count must be a positive integer", field="criteria")
    return int(raw)


def parse_criteria(tag: str) -> BadgeCriteria:
    """Parse a stored criteria tag back into its variant.

    Raises ValidationError for anything that is not one of the three shapes.
    """
    parts = tag.strip().split(":")
    if len(parts) == 2 and parts[0] == "level":
        return LevelReached(_positive_int(parts[1], tag))
    if len(parts) == 2 and parts[0] == "streak":
        return StreakReached(_positive_int(parts[1], tag))
    if len(parts) == 3 and _NAME_RE.match(parts[0]) and _NAME_RE.match(parts[1]):
        return ActivityCount(parts[0], parts[1], _positive_int(parts[2], tag))
    raise ValidationError(
        f"Invalid badge criteria {tag!r}: expected level:<n>, streak:<n> or <activity>:<verb>:<n>",
        field="criteria",
    )


def canonical_tag(tag: str) -> str:
    """Normalize user-supplied criteria text (e.g. ``level:05`` -> ``level:5``)."""
    return parse_criteria(tag).tag
