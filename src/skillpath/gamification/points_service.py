"""Points ledger: per-user accounts, leveling and the immutable transaction log."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import PointsAccount, PointTransaction, User
from skillpath.exceptions import ValidationError
from skillpath.gamification.levels import points_to_next_level, settle_levels

logger = logging.getLogger(__name__)

# Category -> subtotal column. "other" (badge bonuses, challenge rewards) has no subtotal.
CATEGORY_COLUMNS: dict[str, str] = {
    "course_completion": "course_completion_points",
    "video_watch": "video_watch_points",
    "quiz": "quiz_points",
    "attendance": "attendance_points",
    "blog": "blog_points",
    "comment": "comment_points",
    "social": "social_points",
}
EARNING_CATEGORIES = frozenset({*CATEGORY_COLUMNS, "other"})
TRANSACTION_KINDS = frozenset({"earned", "spent", "bonus", "penalty"})


@dataclass(frozen=True)
class RelatedItem:
    """The piece of content an award or challenge refers to."""

    item_id: str
    item_type: str

    @classmethod
    def of(cls, item_id: object, item_type: str) -> RelatedItem:
        return cls(str(item_id), item_type)


@dataclass
class CreditResult:
    account: PointsAccount
    transaction: PointTransaction
    levels_crossed: list[int] = field(default_factory=list)


def validate_award(amount: object, category: str) -> None:
    """Reject non-positive amounts and unknown categories."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Points must be an integer", field="amount")
    if amount <= 0:
        raise ValidationError("Points must be greater than zero", field="amount")
    if category not in EARNING_CATEGORIES:
        raise ValidationError(f"Unknown points category: {category}", field="category")


async def get_account(db: AsyncSession, user_id: int) -> PointsAccount | None:
    """Fetch the points account for a user without creating it."""
    result = await db.execute(select(PointsAccount).where(PointsAccount.user_id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_account(
    db: AsyncSession,
    user_id: int,
    *,
    lock: bool = False,
) -> PointsAccount:
    """Get or create the points account for a user.

    With ``lock=True`` the row is read FOR UPDATE so concurrent awards to the
    same user serialize on it.
    """
    stmt = select(PointsAccount).where(PointsAccount.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    account = result.scalar_one_or_none()
    if account is not None:
        return account

    now = datetime.now(timezone.utc)
    account = PointsAccount(
        user_id=user_id,
        total_points=0,
        level=1,
        current_level_points=0,
        points_to_next_level=points_to_next_level(1),
        created_at=now,
        updated_at=now,
    )
    try:
        async with db.begin_nested():
            db.add(account)
    except IntegrityError:
        # Another transaction created it first
        result = await db.execute(stmt.execution_options(populate_existing=True))
        account = result.scalar_one()
    return account


async def record_transaction(
    db: AsyncSession,
    user_id: int,
    amount: int,
    kind: str,
    category: str,
    description: str,
    related_item: RelatedItem | None = None,
    now: datetime | None = None,
) -> PointTransaction:
    """Append one entry to the ledger."""
    entry = PointTransaction(
        user_id=user_id,
        amount=amount,
        kind=kind,
        category=category,
        description=description[:256],
        related_item_id=related_item.item_id if related_item else None,
        related_item_type=related_item.item_type if related_item else None,
        created_at=now or datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


async def credit_account(
    db: AsyncSession,
    user_id: int,
    amount: int,
    category: str,
    description: str,
    related_item: RelatedItem | None = None,
    kind: str = "earned",
    now: datetime | None = None,
) -> CreditResult:
    """Add points to an account, settle levels and log the transaction.

    This is one step of an award; callers outside the engine should go
    through ``GamificationEngine.award_points`` so badges, streak and
    challenges follow.
    """
    validate_award(amount, category)
    now = now or datetime.now(timezone.utc)

    account = await get_or_create_account(db, user_id, lock=True)
    account.total_points += amount
    account.current_level_points += amount
    column = CATEGORY_COLUMNS.get(category)
    if column is not None:
        setattr(account, column, getattr(account, column) + amount)

    crossed = settle_levels(account)
    account.updated_at = now

    entry = await record_transaction(db, user_id, amount, kind, category, description, related_item, now)

    if crossed:
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(current_level=account.level)
            .execution_options(synchronize_session=False)
        )
        logger.info("User %s reached level %d", user_id, account.level)

    await db.flush()
    return CreditResult(account=account, transaction=entry, levels_crossed=crossed)


async def debit_account(db: AsyncSession, user_id: int, amount: int) -> bool:
    """Guarded debit: subtract ``amount`` only if the balance covers it.

    Returns False when the balance was insufficient at write time, which is
    how a concurrent spend that already drained the account shows up.
    """
    result = await db.execute(
        update(PointsAccount)
        .where(
            PointsAccount.user_id == user_id,
            PointsAccount.total_points >= amount,
        )
        .values(
            total_points=PointsAccount.total_points - amount,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_points_history(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[PointTransaction], int]:
    """Paginated ledger entries, newest first."""
    total_result = await db.execute(
        select(func.count()).select_from(PointTransaction).where(PointTransaction.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(PointTransaction)
        .where(PointTransaction.user_id == user_id)
        .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_leaderboard(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[tuple[PointsAccount, User]], int]:
    """Accounts ordered by total points, then level, both descending."""
    total_result = await db.execute(select(func.count()).select_from(PointsAccount))
    total = total_result.scalar_one()

    result = await db.execute(
        select(PointsAccount, User)
        .join(User, PointsAccount.user_id == User.id)
        .order_by(
            PointsAccount.total_points.desc(),
            PointsAccount.level.desc(),
            PointsAccount.user_id.asc(),
        )
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [(row.PointsAccount, row.User) for row in result], total


async def get_rank(db: AsyncSession, user_id: int) -> int | None:
    """1-based leaderboard position: one plus the number of accounts with more points."""
    account = await get_account(db, user_id)
    if account is None:
        return None
    higher = await db.execute(
        select(func.count())
        .select_from(PointsAccount)
        .where(PointsAccount.total_points > account.total_points)
    )
    return higher.scalar_one() + 1
