"""Spaced-repetition schedule: difficulty rating -> next review time."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum


class Difficulty(str, Enum):
    REPEAT = "repeat"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


REVIEW_INTERVALS: dict[Difficulty, timedelta] = {
    Difficulty.REPEAT: timedelta(0),
    Difficulty.HARD: timedelta(days=1),
    Difficulty.GOOD: timedelta(days=3),
    Difficulty.EASY: timedelta(days=7),
}

_LABELS: dict[Difficulty, str] = {
    Difficulty.REPEAT: "Repeat (Today)",
    Difficulty.HARD: "Hard (1 day)",
    Difficulty.GOOD: "Good (3 days)",
    Difficulty.EASY: "Easy (7 days)",
}


def calculate_next_review(difficulty: Difficulty | str, now: datetime | None = None) -> datetime:
    """Return when a card rated ``difficulty`` should be reviewed next."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now + REVIEW_INTERVALS[Difficulty(difficulty)]


def difficulty_label(difficulty: Difficulty | str) -> str:
    return _LABELS[Difficulty(difficulty)]
