"""EXP reward endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.database import get_session
from rindo.dependencies import get_redis_dep
from rindo.rewards.schemas import AddExpRequest, AddExpResponse
from rindo.rewards.service import RewardLedger

router = APIRouter(prefix="/api/v1/exp", tags=["EXP"])


@router.post("/add", response_model=AddExpResponse)
async def add_exp(
    body: AddExpRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: object | None = Depends(get_redis_dep),  # noqa: B008
) -> AddExpResponse:
    """Credit EXP for a watched video or finished flashcard session. Duplicates are no-ops."""
    ledger = RewardLedger(db, redis=redis)
    result = await ledger.credit_reward(body.wallet_address, body.type, body.source_id)
    return AddExpResponse(**result.to_dict())
