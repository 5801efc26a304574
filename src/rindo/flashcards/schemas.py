"""Request/response models for flashcard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from rindo.flashcards.scheduler import Difficulty


class ReviewRequest(BaseModel):
    wallet_address: str = Field(min_length=1)
    flashcard_id: int = Field(gt=0)
    difficulty: Difficulty


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    flashcard_id: int
    difficulty: str
    last_reviewed_at: datetime
    next_review_at: datetime
    label: str = ""


class DueReviewsResponse(BaseModel):
    reviews: list[ReviewResponse]
    total: int
