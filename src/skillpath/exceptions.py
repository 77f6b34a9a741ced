"""Typed errors raised by the gamification engine and the reward store.

Every error carries the HTTP status the API layer should answer with, so the
global handler in ``skillpath.middleware.error_handler`` can translate them
without knowing about individual services.
"""

from __future__ import annotations

from typing import Any


class GamificationError(Exception):
    """Base class for all engine errors."""

    status_code: int = 400
    kind: str = "gamification_error"

    def __init__(self, detail: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {"detail": self.detail, "error": self.kind}


class NotFound(GamificationError):
    """A user, badge, challenge, reward or redemption does not exist."""

    status_code = 404
    kind = "not_found"


class InvalidState(GamificationError):
    """The target exists but cannot accept the operation right now.

    Examples: inactive or expired reward, out of stock, redemption already
    used, duplicate badge name.
    """

    status_code = 409
    kind = "invalid_state"


class InsufficientBalance(GamificationError):
    """The user's point balance does not cover the cost."""

    status_code = 409
    kind = "insufficient_balance"

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Not enough points. Required: {required}, Available: {available}",
            context={"required": required, "available": available},
        )
        self.required = required
        self.available = available


class ValidationError(GamificationError):
    """Malformed input to an award or creation call."""

    status_code = 422
    kind = "validation_error"

    def __init__(self, detail: str, field: str | None = None) -> None:
        super().__init__(detail, context={"field": field} if field else None)
        self.field = field
