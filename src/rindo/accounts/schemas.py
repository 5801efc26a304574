"""Request/response models for account endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SyncUserRequest(BaseModel):
    wallet_address: str = Field(min_length=1)
    email: str | None = Field(default=None, max_length=320)
    name: str | None = Field(default=None, max_length=128)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    wallet_address: str
    email: str | None = None
    name: str | None = None
    current_exp: int
    total_exp_earned: int
    created_at: datetime
    updated_at: datetime


class SyncUserResponse(BaseModel):
    user: UserResponse
    created: bool


class ExpTransactionEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    source_id: int
    amount: int
    credited: bool
    created_at: datetime


class ConversionEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    exp_amount: int
    tx_hash: str
    status: str
    created_at: datetime


class RedemptionEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    voucher_id: int
    nft_token_id: int
    tx_hash: str
    status: str
    created_at: datetime


class HistoryResponse(BaseModel):
    user: UserResponse
    exp_transactions: list[ExpTransactionEntry]
    conversions: list[ConversionEntry]
    redemptions: list[RedemptionEntry]
