"""Account endpoints: auth sync, balances, dashboard history."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.accounts.schemas import (
    ConversionEntry,
    ExpTransactionEntry,
    HistoryResponse,
    RedemptionEntry,
    SyncUserRequest,
    SyncUserResponse,
    UserResponse,
)
from rindo.accounts.service import get_history, resolve_account, sync_user
from rindo.config import get_settings
from rindo.database import get_session

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.post("/sync", response_model=SyncUserResponse)
async def sync(
    body: SyncUserRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> SyncUserResponse:
    """Called after wallet login. Creates the account with 0 EXP or refreshes its profile."""
    user, created = await sync_user(db, body.wallet_address, email=body.email, name=body.name)
    await db.commit()
    return SyncUserResponse(user=UserResponse.model_validate(user), created=created)


@router.get("/{wallet_address}", response_model=UserResponse)
async def get_user(
    wallet_address: str,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> UserResponse:
    """Current and lifetime EXP for a wallet."""
    user = await resolve_account(db, wallet_address)
    return UserResponse.model_validate(user)


@router.get("/{wallet_address}/history", response_model=HistoryResponse)
async def get_user_history(
    wallet_address: str,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> HistoryResponse:
    """Recent reward attempts, conversions and voucher redemptions."""
    history = await get_history(db, wallet_address, limit=get_settings().history_max_items)
    return HistoryResponse(
        user=UserResponse.model_validate(history["user"]),
        exp_transactions=[ExpTransactionEntry.model_validate(t) for t in history["exp_transactions"]],
        conversions=[ConversionEntry.model_validate(c) for c in history["conversions"]],
        redemptions=[RedemptionEntry.model_validate(r) for r in history["redemptions"]],
    )
