"""FastAPI authentication dependencies."""

from __future__ import annotations

from typing import Any

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.auth.jwt import verify_token
from skillpath.database import get_session
from skillpath.db.models import User

_bearer = HTTPBearer()


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> dict[str, Any]:
    """Verify the bearer token; 401 on any failure."""
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e


async def get_current_user(
    payload: dict[str, Any] = Depends(get_token_payload),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Return the User the token belongs to.

    Raises 401 if the user is unknown to this service.
    """
    user = await db.get(User, int(payload["sub"]))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_admin(
    payload: dict[str, Any] = Depends(get_token_payload),
    user: User = Depends(get_current_user),
) -> User:
    """Same as get_current_user but additionally requires the admin role."""
    if payload.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def require_service_token(
    payload: dict[str, Any] = Depends(get_token_payload),
) -> dict[str, Any]:
    """Admin-role token without a local user lookup (service-to-service calls)."""
    if payload.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return payload
