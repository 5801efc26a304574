"""
Account resolution and auth sync.

Accounts are identified by lower-cased wallet address. Session establishment
happens upstream; this module only maps an address to a row and creates the
row on first login.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from eth_utils import is_address
from sqlalchemy import select

from rindo.db.models import ExpTransaction, TokenConversion, User, VoucherRedeem
from rindo.errors import AccountNotFoundError, RindoValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def normalize_wallet_address(wallet_address: str) -> str:
    """Lower-case and validate an EVM address.

    Raises:
        RindoValidationError: If the value is not a 0x-prefixed 20-byte hex address.
    """
    candidate = (wallet_address or "").strip()
    if not is_address(candidate):
        raise RindoValidationError("wallet_address", "wallet_address must be a valid EVM address")
    return candidate.lower()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_user_by_wallet(db: AsyncSession, wallet_address: str) -> User | None:
    """Fetch a user by wallet address (case-insensitive)."""
    normalized = normalize_wallet_address(wallet_address)
    result = await db.execute(select(User).where(User.wallet_address == normalized))
    return result.scalar_one_or_none()


async def resolve_account(db: AsyncSession, wallet_address: str, *, for_update: bool = False) -> User:
    """Resolve a wallet address to its account or raise AccountNotFoundError.

    With ``for_update`` the row is locked until the current transaction ends
    (PostgreSQL; SQLite ignores the clause and relies on its writer lock).
    """
    normalized = normalize_wallet_address(wallet_address)
    stmt = select(User).where(User.wallet_address == normalized)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt.execution_options(populate_existing=True))
    user = result.scalar_one_or_none()
    if user is None:
        raise AccountNotFoundError(normalized)
    return user


# ---------------------------------------------------------------------------
# Auth sync: create on first login
# ---------------------------------------------------------------------------


async def sync_user(
    db: AsyncSession,
    wallet_address: str,
    email: str | None = None,
    name: str | None = None,
) -> tuple[User, bool]:
    """
    Create a user with zero EXP, or refresh profile fields of an existing one.

    Balances of an existing user are never touched here.

    Returns:
        Tuple of (user, created).
    """
    normalized = normalize_wallet_address(wallet_address)
    now = datetime.now(timezone.utc)

    user = await get_user_by_wallet(db, normalized)
    if user is not None:
        user.email = email or user.email
        user.name = name or user.name
        user.updated_at = now
        await db.flush()
        return user, False

    user = User(
        wallet_address=normalized,
        email=email,
        name=name,
        current_exp=0,
        total_exp_earned=0,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, wallet_address=normalized)
    return user, True


# ---------------------------------------------------------------------------
# Dashboard history
# ---------------------------------------------------------------------------


async def get_history(db: AsyncSession, wallet_address: str, limit: int = 50) -> dict:
    """Most recent reward attempts, conversions and redemptions for an account."""
    user = await resolve_account(db, wallet_address)

    attempts = await db.execute(
        select(ExpTransaction)
        .where(ExpTransaction.user_id == user.id)
        .order_by(ExpTransaction.created_at.desc(), ExpTransaction.id.desc())
        .limit(limit)
    )
    conversions = await db.execute(
        select(TokenConversion)
        .where(TokenConversion.user_id == user.id)
        .order_by(TokenConversion.created_at.desc(), TokenConversion.id.desc())
        .limit(limit)
    )
    redemptions = await db.execute(
        select(VoucherRedeem)
        .where(VoucherRedeem.user_id == user.id)
        .order_by(VoucherRedeem.created_at.desc(), VoucherRedeem.id.desc())
        .limit(limit)
    )

    return {
        "user": user,
        "exp_transactions": list(attempts.scalars().all()),
        "conversions": list(conversions.scalars().all()),
        "redemptions": list(redemptions.scalars().all()),
    }
