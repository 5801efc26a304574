"""
EXP -> RINDO conversion bridge.

The on-chain mint is the irreversible commit point, so the order is:
validate, mint and wait for confirmation, then debit, then log. The ledger
therefore never shows EXP as spent without tokens behind it. The one state the
bridge cannot repair on its own is a confirmed mint whose debit failed; that is
raised as ``PostMintReconciliationRequired`` and left to an operator.

A per-account ``conversion_in_flight`` flag, set together with the balance
check, admits one conversion at a time; a second request fails before it can
mint. The debit clears the flag. A reconciliation case leaves it set.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.accounts.locks import account_lock
from rindo.accounts.service import resolve_account
from rindo.chain.gateway import ChainGateway, MintReceipt
from rindo.db.models import TokenConversion, User
from rindo.errors import (
    ChainError,
    ConversionInProgressError,
    InsufficientBalanceError,
    PostMintReconciliationRequired,
    RindoValidationError,
)
from rindo.redis_client import publish_event

logger = structlog.get_logger()


class ConversionState(str, Enum):
    VALIDATED = "validated"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    DEBITED = "debited"
    LOGGED = "logged"


@dataclass(frozen=True)
class ConversionResult:
    tx_hash: str
    new_balance: int
    explorer_url: str
    exp_amount: int
    conversion_logged: bool

    def to_dict(self) -> dict:
        return asdict(self)


class ConversionBridge:
    """Converts spendable EXP into minted tokens, one request at a time per saga."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: ChainGateway,
        redis: object | None = None,
    ) -> None:
        self.db = db
        self.gateway = gateway
        self.redis = redis

    async def convert(self, wallet_address: str, exp_amount: int) -> ConversionResult:
        """Mint ``exp_amount`` tokens to the account's wallet and debit the same EXP."""
        if isinstance(exp_amount, bool) or not isinstance(exp_amount, int) or exp_amount <= 0:
            raise RindoValidationError("exp_amount", "exp_amount must be a positive integer")

        user = await resolve_account(self.db, wallet_address)
        user_id = user.id
        recipient = user.wallet_address
        # The in-flight flag is committed here; no transaction or lock stays open across the chain round trip.
        await self._claim(user_id, exp_amount)
        self._transition(ConversionState.VALIDATED, user_id, exp_amount)

        self._transition(ConversionState.SUBMITTED, user_id, exp_amount)
        try:
            receipt = await self.gateway.mint_tokens(recipient, exp_amount)
        except ChainError as e:
            logger.error(
                "conversion_mint_failed",
                user_id=user_id,
                exp_amount=exp_amount,
                reason=e.reason,
                tx_hash=e.tx_hash,
            )
            await self._release(user_id)
            raise
        except PostMintReconciliationRequired as e:
            # The mint may still land, so the account stays blocked until an operator resolves it.
            logger.critical(
                "post_mint_reconciliation_required",
                user_id=user_id,
                exp_amount=exp_amount,
                tx_hash=e.tx_hash,
                reason=e.reason,
            )
            raise
        self._transition(ConversionState.CONFIRMED, user_id, exp_amount, tx_hash=receipt.tx_hash)

        new_balance = await self._debit(user_id, exp_amount, receipt)
        self._transition(ConversionState.DEBITED, user_id, exp_amount, tx_hash=receipt.tx_hash)

        logged = await self._log_conversion(user_id, exp_amount, receipt)
        if logged:
            self._transition(ConversionState.LOGGED, user_id, exp_amount, tx_hash=receipt.tx_hash)

        await publish_event(self.redis, "pubsub:tokens_converted", {
            "user_id": user_id,
            "exp_amount": exp_amount,
            "tx_hash": receipt.tx_hash,
            "new_balance": new_balance,
        })

        return ConversionResult(
            tx_hash=receipt.tx_hash,
            new_balance=new_balance,
            explorer_url=self.gateway.explorer_url(receipt.tx_hash),
            exp_amount=exp_amount,
            conversion_logged=logged,
        )

    async def _claim(self, user_id: int, exp_amount: int) -> None:
        """Reserve the account for one conversion, or explain why it cannot be reserved."""
        async with account_lock(user_id):
            result = await self.db.execute(
                update(User)
                .where(
                    User.id == user_id,
                    User.current_exp >= exp_amount,
                    User.conversion_in_flight.is_(False),
                )
                .values(conversion_in_flight=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                await self.db.commit()
                return
            await self.db.rollback()

        state = await self.db.execute(
            select(User.current_exp, User.conversion_in_flight).where(User.id == user_id)
        )
        row = state.one()
        await self.db.commit()
        if row.conversion_in_flight:
            logger.info("conversion_rejected_in_flight", user_id=user_id, exp_amount=exp_amount)
            raise ConversionInProgressError
        raise InsufficientBalanceError(available=int(row.current_exp), requested=exp_amount)

    async def _release(self, user_id: int) -> None:
        """Clear the in-flight flag after a mint that provably did not happen."""
        try:
            await self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(conversion_in_flight=False)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error("conversion_release_failed", user_id=user_id, exc_info=True)

    async def _debit(self, user_id: int, exp_amount: int, receipt: MintReceipt) -> int:
        """Conditionally debit after a confirmed mint. Any failure here needs an operator."""
        try:
            async with account_lock(user_id):
                result = await self.db.execute(
                    update(User)
                    .where(User.id == user_id, User.current_exp >= exp_amount)
                    .values(
                        current_exp=User.current_exp - exp_amount,
                        conversion_in_flight=False,
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                debited = result.rowcount == 1
                if not debited:
                    await self.db.rollback()
                else:
                    await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self._reconciliation_required(user_id, exp_amount, receipt, reason=f"debit failed: {e}")
            raise PostMintReconciliationRequired(receipt.tx_hash, reason="debit failed") from e

        if not debited:
            self._reconciliation_required(user_id, exp_amount, receipt, reason="balance changed before debit")
            raise PostMintReconciliationRequired(receipt.tx_hash, reason="insufficient balance at debit")

        balance = await self.db.execute(select(User.current_exp).where(User.id == user_id))
        return int(balance.scalar_one())

    async def _log_conversion(self, user_id: int, exp_amount: int, receipt: MintReceipt) -> bool:
        """Write the audit row. The balance is already correct, so failure only degrades the trail."""
        try:
            self.db.add(TokenConversion(
                user_id=user_id,
                exp_amount=exp_amount,
                tx_hash=receipt.tx_hash,
                status="confirmed",
                created_at=datetime.now(timezone.utc),
            ))
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.warning(
                "conversion_log_failed",
                user_id=user_id,
                exp_amount=exp_amount,
                tx_hash=receipt.tx_hash,
                exc_info=True,
            )
            return False
        return True

    @staticmethod
    def _transition(state: ConversionState, user_id: int, exp_amount: int, tx_hash: str | None = None) -> None:
        logger.info("conversion_state", state=state.value, user_id=user_id, exp_amount=exp_amount, tx_hash=tx_hash)

    @staticmethod
    def _reconciliation_required(user_id: int, exp_amount: int, receipt: MintReceipt, reason: str) -> None:
        logger.critical(
            "post_mint_reconciliation_required",
            user_id=user_id,
            exp_amount=exp_amount,
            tx_hash=receipt.tx_hash,
            reason=reason,
        )
