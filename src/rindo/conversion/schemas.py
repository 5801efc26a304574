"""Request/response models for the conversion endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ConvertRequest(BaseModel):
    wallet_address: str = Field(min_length=1)
    exp_amount: int = Field(gt=0)


class ConvertResponse(BaseModel):
    tx_hash: str
    new_balance: int
    explorer_url: str
    exp_amount: int
    conversion_logged: bool
    message: str
