"""ORM models for the gamification engine and reward store.

Users are owned by the auth service; this service keeps the minimal user row
it needs for foreign keys, the displayed-badge shelf and the mirrored level.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.db.base import Base, BigIntPK, JSONType, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user", server_default="user")
    displayed_badge_ids: Mapped[list[int]] = mapped_column(JSONType, nullable=False, default=list)
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    last_activity_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Points Ledger
# ---------------------------------------------------------------------------


class PointsAccount(Base):
    """Denormalized points summary: one row per user, locked for every write."""

    __tablename__ = "points_accounts"

    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    current_level_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    points_to_next_level: Mapped[int] = mapped_column(
        Integer, nullable=False, default=100, server_default=text("100")
    )
    course_completion_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    video_watch_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    quiz_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    attendance_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    blog_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    comment_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    social_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class PointTransaction(Base):
    """Immutable points ledger entry. Insert-only."""

    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default="earned")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="other")
    description: Mapped[str] = mapped_column(String(256), nullable=False)
    related_item_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_item_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, index=True)


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


class Badge(Base):
    """Badge definition. ``criteria`` holds the canonical tag of a BadgeCriteria variant."""

    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(256), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="special")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    criteria: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class BadgeAward(Base):
    """Badges earned by users; UNIQUE(user_id, badge_id) prevents duplicates."""

    __tablename__ = "badge_awards"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="badge_awards_user_id_badge_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    displayed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    badge: Mapped[Badge] = relationship("Badge", lazy="joined")


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------


class Streak(Base):
    """Daily activity streak with a bounded history of day entries."""

    __tablename__ = "streaks"

    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # [{"day": "2026-03-01", "activities": ["login", "video_watch"]}, ...] oldest first
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class Challenge(Base):
    """Time-boxed goal: reach ``target_count`` occurrences of ``activity_type``."""

    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="daily")
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_count: Mapped[int] = mapped_column(Integer, nullable=False)
    # [{"item_id": "42", "item_type": "Video"}, ...]; empty means any item
    specific_items: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    reward_badge_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="SET NULL"), nullable=True
    )
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class ChallengeProgress(Base):
    """One user's progress toward one challenge."""

    __tablename__ = "challenge_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="challenge_progress_user_id_challenge_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    challenge: Mapped[Challenge] = relationship("Challenge", lazy="joined")


# ---------------------------------------------------------------------------
# Reward Store
# ---------------------------------------------------------------------------


class Reward(Base):
    """Catalog item purchasable with points. ``quantity == -1`` means unlimited."""

    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="other")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    code: Mapped[str | None] = mapped_column(String(128), nullable=True)
    valid_from: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    valid_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=-1, server_default=text("-1"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_by: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class Redemption(Base):
    """Points spent on a reward, with its one-time verification code."""

    __tablename__ = "redemptions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reward_id: Mapped[int] = mapped_column(Integer, ForeignKey("rewards.id"), nullable=False)
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    redemption_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    redeemed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    reward: Mapped[Reward] = relationship("Reward", lazy="joined")
