"""
SM-2 style scheduler for review cards.

This is a pure computation module with no I/O: every function takes the
current instant explicitly and returns new values instead of mutating.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import replace

from clinrev.domain.constants import (
    AGAIN_EASE_PENALTY,
    EASY_EASE_BONUS,
    EASY_MULTIPLIER,
    FIRST_INTERVAL_DAYS,
    HARD_EASE_PENALTY,
    HARD_MULTIPLIER,
    MIN_EASE,
    MS_PER_DAY,
    SECOND_INTERVAL_DAYS,
)
from clinrev.domain.models import MasteryCard, Question
from clinrev.domain.srs.models import (
    DueItem,
    DueMasteryCard,
    DueVignette,
    Rating,
    ReviewCard,
)

logger = logging.getLogger(__name__)


def apply_rating(card: ReviewCard, rating: Rating | str, now: int) -> ReviewCard:
    """
    Return the card's next state after a review.

    ``again`` resets the streak and the interval. Any other rating grows
    the interval: 1 day, then 6 days, then ``ceil(interval * multiplier)``
    where the multiplier is 1.2 (hard), the ease (good) or ease * 1.5 (easy).
    The multiplier uses the ease from before this review's adjustment.
    """
    rating = Rating.parse(rating)
    interval = card.interval_days
    ease = card.ease_factor
    reps = card.repetition_count

    if rating is Rating.AGAIN:
        reps = 0
        interval = 0
        ease = max(MIN_EASE, ease - AGAIN_EASE_PENALTY)
    else:
        if reps == 0:
            interval = FIRST_INTERVAL_DAYS
        elif reps == 1:
            interval = SECOND_INTERVAL_DAYS
        else:
            interval = math.ceil(interval * _multiplier(rating, ease))
        reps += 1

        if rating is Rating.HARD:
            ease = max(MIN_EASE, ease - HARD_EASE_PENALTY)
        elif rating is Rating.EASY:
            ease += EASY_EASE_BONUS

    return replace(
        card,
        interval_days=interval,
        ease_factor=ease,
        repetition_count=reps,
        next_review_at=now + interval * MS_PER_DAY,
    )


def _multiplier(rating: Rating, ease: float) -> float:
    if rating is Rating.HARD:
        return HARD_MULTIPLIER
    if rating is Rating.EASY:
        return ease * EASY_MULTIPLIER
    return ease


def due_card_ids(cards: Iterable[ReviewCard], now: int) -> list[str]:
    """
    Ids of cards whose next review is at or before ``now``.

    Ordered by due instant (most overdue first), then by id.
    """
    due = [c for c in cards if c.is_due(now)]
    due.sort(key=lambda c: (c.next_review_at, c.card_id))
    return [c.card_id for c in due]


def resolve_due_items(
    cards: Mapping[str, ReviewCard],
    question_library: Mapping[str, Question],
    mastery_cards: Mapping[str, list[MasteryCard]],
    now: int,
) -> list[DueItem]:
    """
    Resolve every due card to the artifact the reviewer should see.

    The question library is consulted first; mastery collections second.
    Cards found in neither are orphans and are dropped.
    """
    mastery_index: dict[str, MasteryCard] = {}
    for parent_id in sorted(mastery_cards):
        for artifact in mastery_cards[parent_id]:
            mastery_index.setdefault(artifact.id, artifact)

    items: list[DueItem] = []
    orphaned = 0
    for card_id in due_card_ids(cards.values(), now):
        card = cards[card_id]
        question = question_library.get(card_id)
        if question is not None:
            items.append(DueVignette(card=card, question=question))
            continue

        artifact = mastery_index.get(card_id)
        if artifact is not None:
            items.append(DueMasteryCard(card=card, mastery_card=artifact))
            continue

        orphaned += 1
        logger.debug(f"Dropping orphaned review card {card_id}")

    if orphaned:
        logger.debug(f"{orphaned} due card(s) matched no question or mastery card")

    return items
