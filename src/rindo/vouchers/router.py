"""Voucher catalog and redemption endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.chain.gateway import ChainGateway, get_chain_gateway
from rindo.database import get_session
from rindo.vouchers.schemas import (
    OwnedVoucher,
    OwnedVouchersResponse,
    RedeemRequest,
    RedeemResponse,
    RedemptionRecord,
    VoucherListResponse,
    VoucherResponse,
)
from rindo.vouchers.service import VoucherService

router = APIRouter(tags=["Vouchers"])


@router.get("/api/v1/vouchers", response_model=VoucherListResponse)
async def list_vouchers(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> VoucherListResponse:
    """Active voucher catalog."""
    vouchers = await VoucherService(db).list_vouchers()
    return VoucherListResponse(vouchers=[VoucherResponse.model_validate(v) for v in vouchers])


@router.post("/api/v1/vouchers/redeem", response_model=RedeemResponse)
async def redeem_voucher(
    body: RedeemRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> RedeemResponse:
    """Record a voucher NFT mint the client already confirmed on-chain."""
    record = await VoucherService(db).record_redemption(
        body.wallet_address,
        body.voucher_id,
        body.nft_token_id,
        body.tx_hash,
    )
    return RedeemResponse(record=RedemptionRecord.model_validate(record))


@router.get("/api/v1/users/{wallet_address}/vouchers", response_model=OwnedVouchersResponse)
async def owned_vouchers(
    wallet_address: str,
    db: AsyncSession = Depends(get_session),  # noqa: B008
    gateway: ChainGateway = Depends(get_chain_gateway),  # noqa: B008
) -> OwnedVouchersResponse:
    """Voucher NFTs held by the wallet, read from the chain."""
    owned = await VoucherService(db).owned_vouchers(wallet_address, gateway)
    return OwnedVouchersResponse(vouchers=[OwnedVoucher(**o) for o in owned])
