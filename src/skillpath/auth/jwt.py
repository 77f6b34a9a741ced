"""
HS256 JWT verification.

Tokens are issued by the platform's auth service with a shared secret. The
`role` claim ("user" or "admin") decides access to the admin endpoints.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import jwt

from skillpath.config import get_settings

ROLES = ("user", "admin")


def create_access_token(
    user_id: int,
    role: Literal["user", "admin"] = "user",
    expires_in: timedelta | None = None,
) -> str:
    """
    Create an access token signed with the shared secret.

    The auth service is the real issuer; this exists for tooling and tests.

    Args:
        user_id: The user's database ID.
        role: "user" or "admin".
        expires_in: Lifetime override (defaults to the configured minutes).

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_in or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + lifetime,
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, of the wrong
            type, or carries an unknown role.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type", "access") != "access":
        msg = f"Expected token type 'access', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    if payload.setdefault("role", "user") not in ROLES:
        msg = f"Unknown role '{payload['role']}'"
        raise jwt.InvalidTokenError(msg)
    if not str(payload["sub"]).isdigit():
        msg = "Token subject must be a user id"
        raise jwt.InvalidTokenError(msg)

    return payload
