"""Pydantic models for the user sync endpoint."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class UserSyncRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    full_name: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=320)
    avatar_url: str | None = None
    role: Literal["user", "admin"] = "user"


class UserSyncResponse(BaseModel):
    id: int
    username: str
    created: bool
    current_level: int
