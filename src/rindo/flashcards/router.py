"""Flashcard review endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.database import get_session
from rindo.flashcards.scheduler import difficulty_label
from rindo.flashcards.schemas import DueReviewsResponse, ReviewRequest, ReviewResponse
from rindo.flashcards.service import due_reviews, record_review

router = APIRouter(prefix="/api/v1/flashcards", tags=["Flashcards"])


@router.post("/review", response_model=ReviewResponse)
async def review_flashcard(
    body: ReviewRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ReviewResponse:
    """Record a review; the next review time is computed from the difficulty rating."""
    review = await record_review(db, body.wallet_address, body.flashcard_id, body.difficulty)
    response = ReviewResponse.model_validate(review)
    response.label = difficulty_label(review.difficulty)
    return response


@router.get("/due", response_model=DueReviewsResponse)
async def get_due_reviews(
    wallet_address: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> DueReviewsResponse:
    """Cards whose scheduled review time has passed."""
    reviews = await due_reviews(db, wallet_address, limit=limit)
    items = []
    for review in reviews:
        item = ReviewResponse.model_validate(review)
        item.label = difficulty_label(review.difficulty)
        items.append(item)
    return DueReviewsResponse(reviews=items, total=len(items))
