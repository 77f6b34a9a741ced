"""Badge criteria parsing and canonical tags."""

import pytest

from skillpath.exceptions import ValidationError
from skillpath.gamification.criteria import (
    ActivityCount,
    LevelReached,
    StreakReached,
    canonical_tag,
    parse_criteria,
)


class TestTags:
    def test_level_tag(self):
        assert LevelReached(5).tag == "level:5"

    def test_streak_tag(self):
        assert StreakReached(7).tag == "streak:7"

    def test_activity_tag(self):
        assert ActivityCount("blog", "publish", 1).tag == "blog:publish:1"


class TestParse:
    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("level:10", LevelReached(10)),
            ("streak:30", StreakReached(30)),
            ("video:watch:1", ActivityCount("video", "watch", 1)),
            ("join:platform:1", ActivityCount("join", "platform", 1)),
            ("  quiz:perfect:1 ", ActivityCount("quiz", "perfect", 1)),
        ],
    )
    def test_valid(self, tag, expected):
        assert parse_criteria(tag) == expected

    def test_round_trip_is_canonical(self):
        assert canonical_tag("level:05") == "level:5"

    @pytest.mark.parametrize(
        "tag",
        ["", "level", "level:0", "level:-1", "streak:abc", "Blog:publish:1", "blog:publish", "a:b:c:1"],
    )
    def test_invalid(self, tag):
        with pytest.raises(ValidationError) as exc_info:
            parse_criteria(tag)
        assert exc_info.value.field == "criteria"
