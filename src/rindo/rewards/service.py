"""Reward ledger: idempotent EXP crediting per completion event."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.accounts.locks import account_lock
from rindo.accounts.service import resolve_account
from rindo.config import get_settings
from rindo.db.models import ExpTransaction, User, UserVideoProgress
from rindo.errors import RindoValidationError
from rindo.redis_client import publish_event

logger = structlog.get_logger()


class RewardType(str, Enum):
    VIDEO_COMPLETE = "video_complete"
    FLASHCARD_SESSION = "flashcard_session"


# Extending this table is the only way to add a reward kind.
REWARD_AMOUNTS: dict[RewardType, int] = {
    RewardType.VIDEO_COMPLETE: 10,
    RewardType.FLASHCARD_SESSION: 15,
}

DUPLICATE_MESSAGE = "Already earned for this source"


@dataclass(frozen=True)
class CreditResult:
    credited: bool
    new_balance: int
    total_earned: int
    amount: int
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


def parse_reward_type(value: str | RewardType) -> RewardType:
    try:
        return RewardType(value)
    except ValueError as e:
        msg = "type must be 'video_complete' or 'flashcard_session'"
        raise RindoValidationError("type", msg) from e


def get_reward_amount(reward_type: RewardType) -> int:
    return REWARD_AMOUNTS[reward_type]


class RewardLedger:
    """Credits EXP at most once per video, and once per lesson per rolling window.

    Every call first commits an attempt row so the audit trail survives any
    later failure. The duplicate check and the credit then run as one
    transaction under the per-account lock.
    """

    def __init__(
        self,
        db: AsyncSession,
        redis: object | None = None,
        dedup_window_seconds: int | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        if dedup_window_seconds is None:
            dedup_window_seconds = get_settings().flashcard_dedup_window_seconds
        self.dedup_window = timedelta(seconds=dedup_window_seconds)

    async def credit_reward(
        self,
        wallet_address: str,
        reward_type: str | RewardType,
        source_id: int,
        now: datetime | None = None,
    ) -> CreditResult:
        """Credit EXP for a completion event. Duplicates return credited=False, not an error."""
        kind = parse_reward_type(reward_type)
        if isinstance(source_id, bool) or not isinstance(source_id, int) or source_id <= 0:
            raise RindoValidationError("source_id", "source_id must be a positive integer")

        now = now or datetime.now(timezone.utc)
        amount = get_reward_amount(kind)

        user = await resolve_account(self.db, wallet_address)
        attempt_id = await self._record_attempt(user.id, kind, source_id, amount, now)

        async with account_lock(user.id):
            try:
                result = await self._apply_credit(user.wallet_address, kind, source_id, amount, attempt_id, now)
            except Exception:
                await self.db.rollback()
                raise

        if result.credited:
            await publish_event(self.redis, "pubsub:exp_credited", {
                "user_id": user.id,
                "type": kind.value,
                "source_id": source_id,
                "amount": amount,
                "new_balance": result.new_balance,
            })
        return result

    async def _record_attempt(
        self,
        user_id: int,
        kind: RewardType,
        source_id: int,
        amount: int,
        now: datetime,
    ) -> int:
        """Durably log the attempt before anything else is evaluated."""
        attempt = ExpTransaction(
            user_id=user_id,
            type=kind.value,
            source_id=source_id,
            amount=amount,
            credited=False,
            created_at=now,
        )
        self.db.add(attempt)
        await self.db.commit()
        return attempt.id

    async def _apply_credit(
        self,
        wallet_address: str,
        kind: RewardType,
        source_id: int,
        amount: int,
        attempt_id: int,
        now: datetime,
    ) -> CreditResult:
        user = await resolve_account(self.db, wallet_address, for_update=True)

        if await self._is_duplicate(user.id, kind, source_id, attempt_id, now):
            await self.db.commit()
            logger.info("exp_duplicate", user_id=user.id, type=kind.value, source_id=source_id)
            return CreditResult(
                credited=False,
                new_balance=user.current_exp,
                total_earned=user.total_exp_earned,
                amount=0,
                message=DUPLICATE_MESSAGE,
            )

        await self.db.execute(
            update(User)
            .where(User.id == user.id)
            .values(
                current_exp=User.current_exp + amount,
                total_exp_earned=User.total_exp_earned + amount,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(ExpTransaction)
            .where(ExpTransaction.id == attempt_id)
            .values(credited=True)
            .execution_options(synchronize_session=False)
        )

        if kind is RewardType.VIDEO_COMPLETE:
            try:
                async with self.db.begin_nested():
                    self.db.add(UserVideoProgress(user_id=user.id, video_id=source_id, completed_at=now))
                    await self.db.flush()
            except IntegrityError:
                # Another request recorded this video first; its credit stands, ours is undone.
                await self.db.rollback()
                current_exp, total_exp = await self._balances(user.id)
                logger.info("exp_duplicate", user_id=user.id, type=kind.value, source_id=source_id, race=True)
                return CreditResult(
                    credited=False,
                    new_balance=current_exp,
                    total_earned=total_exp,
                    amount=0,
                    message=DUPLICATE_MESSAGE,
                )
            except SQLAlchemyError:
                # Known gap: the credit stands without its duplicate guard row.
                logger.warning(
                    "video_progress_write_failed",
                    user_id=user.id,
                    video_id=source_id,
                    exc_info=True,
                )

        await self.db.commit()
        current_exp, total_exp = await self._balances(user.id)
        logger.info(
            "exp_credited",
            user_id=user.id,
            type=kind.value,
            source_id=source_id,
            amount=amount,
            new_balance=current_exp,
        )
        return CreditResult(
            credited=True,
            new_balance=current_exp,
            total_earned=total_exp,
            amount=amount,
            message=f"+{amount} EXP awarded",
        )

    async def _is_duplicate(
        self,
        user_id: int,
        kind: RewardType,
        source_id: int,
        attempt_id: int,
        now: datetime,
    ) -> bool:
        if kind is RewardType.VIDEO_COMPLETE:
            result = await self.db.execute(
                select(UserVideoProgress.id).where(
                    UserVideoProgress.user_id == user_id,
                    UserVideoProgress.video_id == source_id,
                )
            )
            return result.first() is not None

        window_start = now - self.dedup_window
        result = await self.db.execute(
            select(ExpTransaction.id)
            .where(
                ExpTransaction.user_id == user_id,
                ExpTransaction.type == kind.value,
                ExpTransaction.source_id == source_id,
                ExpTransaction.credited.is_(True),
                ExpTransaction.created_at >= window_start,
                ExpTransaction.id != attempt_id,
            )
            .limit(1)
        )
        return result.first() is not None

    async def _balances(self, user_id: int) -> tuple[int, int]:
        result = await self.db.execute(
            select(User.current_exp, User.total_exp_earned).where(User.id == user_id)
        )
        row = result.one()
        return int(row.current_exp), int(row.total_exp_earned)
