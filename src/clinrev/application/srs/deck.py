"""
Review deck: the per-card scheduling state for one learner.

Cards enter the deck when a question is bookmarked or when mastery cards
are generated for it. They leave only through an explicit reset.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from clinrev.domain.models import MasteryCard, Question
from clinrev.domain.ports import MasteryCardGenerator
from clinrev.domain.srs.models import DueItem, Rating, ReviewCard

from .scheduler import apply_rating, due_card_ids, resolve_due_items

logger = logging.getLogger(__name__)


class ReviewDeck:
    """
    Mapping of card id to ReviewCard with the operations that mutate it.

    Each operation replaces a single card; cards are independent of one
    another, so no cross-card ordering is implied.
    """

    def __init__(self, cards: Mapping[str, ReviewCard] | None = None):
        self._cards: dict[str, ReviewCard] = dict(cards or {})

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    @property
    def cards(self) -> Mapping[str, ReviewCard]:
        """Read-only snapshot of the current cards."""
        return MappingProxyType(dict(self._cards))

    def get(self, card_id: str) -> ReviewCard | None:
        return self._cards.get(card_id)

    def bookmark(self, question_id: str, now: int) -> ReviewCard:
        """Start tracking a bookmarked question; an existing card is left alone."""
        existing = self._cards.get(question_id)
        if existing is not None:
            return existing
        card = ReviewCard.baseline(question_id, now)
        self._cards[question_id] = card
        return card

    def rate(self, card_id: str, rating: Rating | str, now: int) -> ReviewCard:
        """
        Apply a rating. An unknown id starts from a never-scheduled card
        (due at epoch 0) and is then rated.
        """
        current = self._cards.get(card_id) or ReviewCard(card_id=card_id, next_review_at=0)
        updated = apply_rating(current, rating, now)
        self._cards[card_id] = updated
        return updated

    def seed_mastery_cards(self, cards: Iterable[MasteryCard], now: int) -> list[ReviewCard]:
        """Track newly generated mastery cards, rating each ``again`` so it is due today."""
        return [self.rate(card.id, Rating.AGAIN, now) for card in cards]

    def due_ids(self, now: int) -> list[str]:
        return due_card_ids(self._cards.values(), now)

    def due(
        self,
        question_library: Mapping[str, Question],
        mastery_cards: Mapping[str, list[MasteryCard]],
        now: int,
    ) -> list[DueItem]:
        return resolve_due_items(self._cards, question_library, mastery_cards, now)

    def reset(self) -> None:
        self._cards.clear()


async def dissect_question(
    question: Question,
    generator: MasteryCardGenerator,
    mastery_cards: Mapping[str, list[MasteryCard]],
    deck: ReviewDeck,
    now: int,
    force: bool = False,
) -> list[MasteryCard] | None:
    """
    Generate mastery cards for a question and seed them into the deck.

    Returns:
        The new cards, or None when cards already exist and ``force`` is off.
    """
    if question.id in mastery_cards and not force:
        return None

    generated = await generator.generate(question)
    layers = [card for card in generated if card.parent_id == question.id]
    if len(layers) != len(generated):
        logger.warning(
            f"Generator returned {len(generated) - len(layers)} card(s) "
            f"for a different parent than {question.id}; ignoring them"
        )

    deck.seed_mastery_cards(layers, now)
    logger.info(f"Seeded {len(layers)} mastery card(s) for question {question.id}")
    return layers
