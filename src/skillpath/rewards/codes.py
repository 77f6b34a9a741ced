"""Redemption code generation.

Codes are 8 upper-case hex characters from a cryptographic random source,
a dash, and the last 4 digits of the epoch milliseconds:

    3FA94C1E-0412
"""

from __future__ import annotations

import re
import secrets
import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import Redemption

CODE_RANDOM_BYTES = 4
CODE_PATTERN = re.compile(r"^[0-9A-F]{8}-\d{4}$")


def generate_redemption_code(epoch_ms: int | None = None) -> str:
    """Generate one candidate code; uniqueness is checked by the caller."""
    if epoch_ms is None:
        epoch_ms = time.time_ns() // 1_000_000
    suffix = str(epoch_ms)[-4:].zfill(4)
    return f"{secrets.token_hex(CODE_RANDOM_BYTES).upper()}-{suffix}"


def normalize_redemption_code(code: str) -> str:
    """Normalize a code for case-insensitive lookup."""
    return code.strip().upper()


async def generate_unique_redemption_code(db: AsyncSession, attempts: int = 10) -> str:
    """Generate a code that doesn't already exist in the database."""
    for _ in range(attempts):
        code = generate_redemption_code()
        existing = await db.execute(
            select(Redemption.id).where(Redemption.redemption_code == code)
        )
        if existing.scalar_one_or_none() is None:
            return code
    msg = f"Failed to generate unique redemption code after {attempts} attempts"
    raise RuntimeError(msg)
