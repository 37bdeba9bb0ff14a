"""
Domain models for spaced-repetition scheduling.

The tuple (interval_days, ease_factor, repetition_count, next_review_at)
is the whole card state; there is no separate named state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from clinrev.domain.constants import INITIAL_EASE
from clinrev.domain.errors import UnknownRatingError
from clinrev.domain.models import MasteryCard, Question


class Rating(str, Enum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def parse(cls, value: "str | Rating") -> "Rating":
        if isinstance(value, Rating):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownRatingError(value) from None


@dataclass(frozen=True)
class ReviewCard:
    """
    Scheduling state for one reviewable unit.

    Attributes:
        card_id: A question id or a mastery-card id.
        next_review_at: Epoch milliseconds at which the card becomes due.
        interval_days: Current interval; 0 means "review again today".
        ease_factor: Interval multiplier, never below 1.3.
        repetition_count: Consecutive successful reviews; reset on failure.
    """

    card_id: str
    next_review_at: int
    interval_days: int = 0
    ease_factor: float = INITIAL_EASE
    repetition_count: int = 0

    @classmethod
    def baseline(cls, card_id: str, now: int) -> "ReviewCard":
        """A fresh card, due immediately."""
        return cls(card_id=card_id, next_review_at=now)

    def is_due(self, now: int) -> bool:
        return self.next_review_at <= now


@dataclass(frozen=True)
class DueVignette:
    card: ReviewCard
    question: Question
    type: Literal["vignette"] = "vignette"


@dataclass(frozen=True)
class DueMasteryCard:
    card: ReviewCard
    mastery_card: MasteryCard
    type: Literal["mastery"] = "mastery"


DueItem = DueVignette | DueMasteryCard
