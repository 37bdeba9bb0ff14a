# Application SRS Package
from .deck import ReviewDeck, dissect_question
from .scheduler import apply_rating, due_card_ids, resolve_due_items

__all__ = ["apply_rating", "due_card_ids", "resolve_due_items", "ReviewDeck", "dissect_question"]
