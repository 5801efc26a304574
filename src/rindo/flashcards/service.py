"""Flashcard review recording and due-card lookup."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.accounts.service import resolve_account
from rindo.db.models import UserFlashcardReview
from rindo.errors import RindoValidationError
from rindo.flashcards.scheduler import Difficulty, calculate_next_review

logger = logging.getLogger(__name__)


def parse_difficulty(value: str | Difficulty) -> Difficulty:
    try:
        return Difficulty(value)
    except ValueError as e:
        raise RindoValidationError("difficulty", "difficulty must be one of repeat, hard, good, easy") from e


async def _get_review(db: AsyncSession, user_id: int, flashcard_id: int) -> UserFlashcardReview | None:
    result = await db.execute(
        select(UserFlashcardReview).where(
            UserFlashcardReview.user_id == user_id,
            UserFlashcardReview.flashcard_id == flashcard_id,
        )
    )
    return result.scalar_one_or_none()


async def record_review(
    db: AsyncSession,
    wallet_address: str,
    flashcard_id: int,
    difficulty: str | Difficulty,
    now: datetime | None = None,
) -> UserFlashcardReview:
    """Upsert the schedule for (account, flashcard). Only the latest review is kept."""
    if isinstance(flashcard_id, bool) or not isinstance(flashcard_id, int) or flashcard_id <= 0:
        raise RindoValidationError("flashcard_id", "flashcard_id must be a positive integer")
    rating = parse_difficulty(difficulty)
    now = now or datetime.now(timezone.utc)
    next_review_at = calculate_next_review(rating, now)

    user = await resolve_account(db, wallet_address)

    review = await _get_review(db, user.id, flashcard_id)
    if review is None:
        review = UserFlashcardReview(
            user_id=user.id,
            flashcard_id=flashcard_id,
            difficulty=rating.value,
            last_reviewed_at=now,
            next_review_at=next_review_at,
        )
        db.add(review)
        try:
            await db.commit()
            return review
        except IntegrityError:
            # Concurrent first review of the same card; fall through to update.
            await db.rollback()
            review = await _get_review(db, user.id, flashcard_id)
            if review is None:
                raise

    review.difficulty = rating.value
    review.last_reviewed_at = now
    review.next_review_at = next_review_at
    await db.commit()
    logger.debug("Review recorded: user=%s card=%s next=%s", user.id, flashcard_id, next_review_at)
    return review


async def due_reviews(
    db: AsyncSession,
    wallet_address: str,
    now: datetime | None = None,
    limit: int = 50,
) -> list[UserFlashcardReview]:
    """Reviews whose next_review_at has passed, oldest first."""
    now = now or datetime.now(timezone.utc)
    user = await resolve_account(db, wallet_address)
    result = await db.execute(
        select(UserFlashcardReview)
        .where(
            UserFlashcardReview.user_id == user.id,
            UserFlashcardReview.next_review_at <= now,
        )
        .order_by(UserFlashcardReview.next_review_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())
