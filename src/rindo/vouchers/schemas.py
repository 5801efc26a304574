"""Request/response models for voucher endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RedeemRequest(BaseModel):
    wallet_address: str = Field(min_length=1)
    voucher_id: int = Field(gt=0)
    nft_token_id: int = Field(gt=0)
    tx_hash: str = Field(min_length=1)


class RedemptionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    voucher_id: int
    nft_token_id: int
    tx_hash: str
    status: str
    created_at: datetime


class RedeemResponse(BaseModel):
    record: RedemptionRecord
    message: str = "Voucher redemption recorded"


class VoucherResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nft_token_id: int
    name: str
    partner_name: str
    discount: str
    cost_in_rindo: int
    metadata_uri: str | None = None


class VoucherListResponse(BaseModel):
    vouchers: list[VoucherResponse]


class OwnedVoucher(BaseModel):
    nft_token_id: int
    quantity: int
    name: str
    partner_name: str
    discount: str
    metadata_uri: str | None = None
    cost_in_rindo: int


class OwnedVouchersResponse(BaseModel):
    vouchers: list[OwnedVoucher]
