"""Pydantic request and response models for reward endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RewardResponse(BaseModel):
    id: int
    name: str
    description: str
    points_cost: int
    category: str
    image_url: str | None = None
    valid_from: datetime
    valid_until: datetime | None = None
    quantity: int
    is_active: bool


class AdminRewardResponse(RewardResponse):
    code: str | None = None
    created_by: int | None = None
    created_at: datetime


class RewardCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    points_cost: int
    category: str = "other"
    image_url: str | None = None
    code: str | None = Field(default=None, max_length=128)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    quantity: int = -1
    is_active: bool = True


class RewardUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    points_cost: int | None = None
    category: str | None = None
    image_url: str | None = None
    code: str | None = Field(default=None, max_length=128)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    quantity: int | None = None
    is_active: bool | None = None


class RedemptionResponse(BaseModel):
    id: int
    user_id: int
    reward: RewardResponse
    points_spent: int
    redemption_code: str
    redeemed_at: datetime
    expires_at: datetime
    status: str
    is_used: bool
    used_at: datetime | None = None
    reward_code: str | None = None


class RedeemResponse(BaseModel):
    redemption: RedemptionResponse
    remaining_points: int
