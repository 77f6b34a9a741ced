"""Pydantic request and response models for gamification endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

# --- Badge ---


class BadgeResponse(BaseModel):
    id: int
    name: str
    description: str
    icon: str
    category: str
    level: int
    points_awarded: int
    criteria: str
    is_hidden: bool = False


class EarnedBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime
    displayed: bool = True


class UserBadgesResponse(BaseModel):
    earned: list[EarnedBadgeResponse]
    displayed_badge_ids: list[int]
    total_earned: int
    total_available: int


class BadgeCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str = Field(min_length=1)
    icon: str = Field(min_length=1, max_length=256)
    category: str = "special"
    level: int = 1
    points_awarded: int = 0
    criteria: str
    is_hidden: bool = False


class BadgeUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    icon: str | None = None
    category: str | None = None
    level: int | None = None
    points_awarded: int | None = None
    criteria: str | None = None
    is_hidden: bool | None = None


class DisplayedBadgesRequest(BaseModel):
    badge_ids: list[int]


class DisplayedBadgesResponse(BaseModel):
    displayed_badge_ids: list[int]


# --- Points ---


class PointsResponse(BaseModel):
    total_points: int
    level: int
    current_level_points: int
    points_to_next_level: int
    categories: dict[str, int]


class TransactionResponse(BaseModel):
    id: int
    amount: int
    kind: str
    category: str
    description: str
    related_item_id: str | None = None
    related_item_type: str | None = None
    created_at: datetime


class PointsHistoryResponse(BaseModel):
    entries: list[TransactionResponse]
    total: int
    page: int
    limit: int
    pages: int


# --- Streak ---


class StreakDay(BaseModel):
    day: date
    activities: list[str]


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
    history: list[StreakDay] = []


class StreakLeaderboardRequest(BaseModel):
    user_ids: list[int] = Field(max_length=100)


class StreakLeaderboardEntry(BaseModel):
    user_id: int
    current_streak: int
    longest_streak: int


class StreakLeaderboardResponse(BaseModel):
    streaks: list[StreakLeaderboardEntry]


# --- Challenges ---


class SpecificItem(BaseModel):
    item_id: str
    item_type: str


class ChallengeResponse(BaseModel):
    id: int
    title: str
    description: str
    type: str
    activity_type: str
    target_count: int
    specific_items: list[SpecificItem]
    reward_points: int
    reward_badge_id: int | None = None
    start_date: datetime
    end_date: datetime
    is_active: bool


class ChallengeProgressResponse(BaseModel):
    challenge: ChallengeResponse
    progress: int
    is_completed: bool
    completed_at: datetime | None = None


class ChallengeCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    type: Literal["daily", "weekly", "monthly", "special"] = "daily"
    activity_type: str = Field(min_length=1, max_length=32)
    target_count: int
    specific_items: list[SpecificItem] = []
    reward_points: int = 0
    reward_badge_id: int | None = None
    start_date: datetime
    end_date: datetime
    is_active: bool = True


class ChallengeUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: Literal["daily", "weekly", "monthly", "special"] | None = None
    activity_type: str | None = None
    target_count: int | None = None
    specific_items: list[SpecificItem] | None = None
    reward_points: int | None = None
    reward_badge_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None


# --- Profile & leaderboard ---


class UserSummary(BaseModel):
    id: int
    username: str
    full_name: str | None = None
    avatar_url: str | None = None


class ProfileResponse(BaseModel):
    user: UserSummary
    points: PointsResponse
    badges: list[EarnedBadgeResponse]
    displayed_badges: list[BadgeResponse]
    streak: StreakResponse
    challenges: list[ChallengeProgressResponse]
    recent_transactions: list[TransactionResponse]
    rank: int | None = None


class LeaderboardEntry(BaseModel):
    rank: int
    user: UserSummary
    total_points: int
    level: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    total: int
    page: int
    limit: int


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    points_required: int
    cumulative: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


# --- Admin awards ---


class AwardPointsRequest(BaseModel):
    user_id: int
    amount: int
    category: str = "other"
    description: str = Field(default="Awarded by admin", max_length=256)


class AwardBadgeRequest(BaseModel):
    user_id: int
    badge_id: int


class AwardOutcomeResponse(BaseModel):
    user_id: int
    points_awarded: int
    total_points: int | None = None
    level: int | None = None
    levels_crossed: list[int]
    badges_earned: list[BadgeResponse]
    challenges_completed: list[int]


class AwardBadgeResponse(BaseModel):
    badge: BadgeResponse
    already_awarded: bool
    outcome: AwardOutcomeResponse


# --- Admin stats ---


class BadgeCount(BaseModel):
    badge_id: int
    name: str
    count: int


class ChallengeCount(BaseModel):
    challenge_id: int
    title: str
    completions: int


class AdminStatsResponse(BaseModel):
    total_users: int
    total_points_awarded: int
    total_badges_awarded: int
    total_challenges_completed: int
    total_redemptions: int
    top_badges: list[BadgeCount]
    top_challenges: list[ChallengeCount]
    points_by_category: dict[str, int]


# --- Internal activity events ---


class ActivityEventRequest(BaseModel):
    event_type: Literal[
        "user_registered",
        "login",
        "blog_published",
        "video_progress",
        "course_completed",
        "quiz_passed",
        "comment_posted",
    ]
    user_id: int
    item_id: str | None = None
    title: str = ""
    first_watch: bool = False
    was_completed: bool = False
    progress: float = 0
    score: float | None = None
    occurred_at: datetime | None = None


class ActivityEventResponse(BaseModel):
    accepted: bool
    outcome: AwardOutcomeResponse | None = None
