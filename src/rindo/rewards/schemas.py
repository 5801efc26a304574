"""Request/response models for reward endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from rindo.rewards.service import RewardType


class AddExpRequest(BaseModel):
    wallet_address: str = Field(min_length=1)
    type: RewardType
    source_id: int = Field(gt=0)


class AddExpResponse(BaseModel):
    credited: bool
    new_balance: int
    total_earned: int
    amount: int
    message: str
