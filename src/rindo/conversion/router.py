"""EXP -> RINDO conversion endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.chain.gateway import ChainGateway, get_chain_gateway
from rindo.conversion.schemas import ConvertRequest, ConvertResponse
from rindo.conversion.service import ConversionBridge
from rindo.database import get_session
from rindo.dependencies import get_redis_dep

router = APIRouter(prefix="/api/v1/exp", tags=["EXP"])


@router.post("/convert", response_model=ConvertResponse)
async def convert_exp(
    body: ConvertRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
    gateway: ChainGateway = Depends(get_chain_gateway),  # noqa: B008
    redis: object | None = Depends(get_redis_dep),  # noqa: B008
) -> ConvertResponse:
    """Mint RINDO for spendable EXP. Blocks until the mint is confirmed on-chain.

    A 500 with code ``post_mint_reconciliation_required`` means tokens were minted
    but EXP was not debited; clients must not retry it.
    """
    bridge = ConversionBridge(db, gateway, redis=redis)
    result = await bridge.convert(body.wallet_address, body.exp_amount)
    return ConvertResponse(
        **result.to_dict(),
        message=f"Converted {result.exp_amount} EXP to {result.exp_amount} RINDO",
    )
