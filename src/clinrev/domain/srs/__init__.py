# Domain SRS Package
from .models import DueItem, DueMasteryCard, DueVignette, Rating, ReviewCard

__all__ = ["Rating", "ReviewCard", "DueVignette", "DueMasteryCard", "DueItem"]
