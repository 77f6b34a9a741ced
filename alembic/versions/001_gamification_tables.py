"""Gamification and reward store tables.

Creates users, points_accounts, point_transactions, badges, badge_awards,
streaks, challenges, challenge_progress, rewards and redemptions.

Revision ID: 001_gamification_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_gamification_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users (mirrored from the auth service) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            username VARCHAR(64) UNIQUE NOT NULL,
            full_name VARCHAR(128),
            email VARCHAR(320) UNIQUE,
            avatar_url TEXT,
            role VARCHAR(16) NOT NULL DEFAULT 'user',
            displayed_badge_ids JSONB NOT NULL DEFAULT '[]',
            current_level INTEGER NOT NULL DEFAULT 1,
            last_activity_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Points Accounts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS points_accounts (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            total_points INTEGER NOT NULL DEFAULT 0 CHECK (total_points >= 0),
            level INTEGER NOT NULL DEFAULT 1,
            current_level_points INTEGER NOT NULL DEFAULT 0,
            points_to_next_level INTEGER NOT NULL DEFAULT 100,
            course_completion_points INTEGER NOT NULL DEFAULT 0,
            video_watch_points INTEGER NOT NULL DEFAULT 0,
            quiz_points INTEGER NOT NULL DEFAULT 0,
            attendance_points INTEGER NOT NULL DEFAULT 0,
            blog_points INTEGER NOT NULL DEFAULT 0,
            comment_points INTEGER NOT NULL DEFAULT 0,
            social_points INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_points_accounts_leaderboard
        ON points_accounts(total_points DESC, level DESC)
    """)

    # --- Point Transactions (insert-only ledger) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS point_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            kind VARCHAR(16) NOT NULL DEFAULT 'earned',
            category VARCHAR(32) NOT NULL DEFAULT 'other',
            description VARCHAR(256) NOT NULL,
            related_item_id VARCHAR(64),
            related_item_type VARCHAR(32),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_point_transactions_user
        ON point_transactions(user_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_point_transactions_item
        ON point_transactions(user_id, category, related_item_type)
    """)

    # --- Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(256) NOT NULL,
            category VARCHAR(32) NOT NULL DEFAULT 'special',
            level INTEGER NOT NULL DEFAULT 1 CHECK (level BETWEEN 1 AND 5),
            points_awarded INTEGER NOT NULL DEFAULT 0 CHECK (points_awarded >= 0),
            criteria VARCHAR(128) NOT NULL,
            is_hidden BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_badges_criteria
        ON badges(criteria)
    """)

    # --- Badge Awards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badge_awards (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id INTEGER NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            displayed BOOLEAN NOT NULL DEFAULT true,
            CONSTRAINT badge_awards_user_id_badge_id_key UNIQUE(user_id, badge_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_badge_awards_user
        ON badge_awards(user_id)
    """)

    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streaks (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            history JSONB NOT NULL DEFAULT '[]',
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id SERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            description TEXT NOT NULL,
            type VARCHAR(16) NOT NULL DEFAULT 'daily',
            activity_type VARCHAR(32) NOT NULL,
            target_count INTEGER NOT NULL CHECK (target_count >= 1),
            specific_items JSONB NOT NULL DEFAULT '[]',
            reward_points INTEGER NOT NULL DEFAULT 0,
            reward_badge_id INTEGER REFERENCES badges(id) ON DELETE SET NULL,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (end_date > start_date)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_challenges_activity
        ON challenges(activity_type, is_active)
    """)

    # --- Challenge Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenge_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            challenge_id INTEGER NOT NULL REFERENCES challenges(id) ON DELETE CASCADE,
            progress INTEGER NOT NULL DEFAULT 0,
            is_completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT challenge_progress_user_id_challenge_id_key UNIQUE(user_id, challenge_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_challenge_progress_user
        ON challenge_progress(user_id) WHERE is_completed = false
    """)

    # --- Rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id SERIAL PRIMARY KEY,
            name VARCHAR(200) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            points_cost INTEGER NOT NULL CHECK (points_cost >= 1),
            category VARCHAR(32) NOT NULL DEFAULT 'other',
            image_url TEXT,
            code VARCHAR(128),
            valid_from TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            valid_until TIMESTAMPTZ,
            quantity INTEGER NOT NULL DEFAULT -1 CHECK (quantity >= -1),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_by BIGINT REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Redemptions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS redemptions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            reward_id INTEGER NOT NULL REFERENCES rewards(id),
            points_spent INTEGER NOT NULL,
            redemption_code VARCHAR(32) UNIQUE NOT NULL,
            redeemed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            expires_at TIMESTAMPTZ NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            is_used BOOLEAN NOT NULL DEFAULT false,
            used_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_redemptions_user
        ON redemptions(user_id, redeemed_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS redemptions CASCADE")
    op.execute("DROP TABLE IF EXISTS rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS challenge_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS challenges CASCADE")
    op.execute("DROP TABLE IF EXISTS streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS badge_awards CASCADE")
    op.execute("DROP TABLE IF EXISTS badges CASCADE")
    op.execute("DROP TABLE IF EXISTS point_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS points_accounts CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
