"""
Domain models for study sessions and the question library.

These are pure data structures with no I/O or external dependencies.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CognitiveLevel(str, Enum):
    RECALL = "Recall"
    APPLICATION = "Application"
    INTEGRATION = "Integration"


@dataclass(frozen=True)
class QuestionMeta:
    """
    The subset of a question that analytics reads.

    Attributes:
        tags: Free-text labels in the order the generator produced them.
        clinical_concepts: Canonical concept labels.
        cognitive_level: Recall, Application or Integration (None if unknown).
    """

    tags: tuple[str, ...] = ()
    clinical_concepts: tuple[str, ...] = ()
    cognitive_level: CognitiveLevel | None = None


@dataclass(frozen=True)
class Question:
    """
    A clinical vignette question as produced by the generation collaborator.

    Fields the core does not interpret (e.g. a cached deep-dive write-up)
    are carried in ``extras`` so that export/import preserves them.
    """

    id: str
    vignette: str
    options: tuple[str, ...]
    correct_index: int
    tags: tuple[str, ...] = ()
    clinical_concepts: tuple[str, ...] = ()
    cognitive_level: CognitiveLevel | None = None
    explanation: Any = None
    extras: Mapping[str, Any] = field(default_factory=dict)

    @property
    def meta(self) -> QuestionMeta:
        return QuestionMeta(
            tags=self.tags,
            clinical_concepts=self.clinical_concepts,
            cognitive_level=self.cognitive_level,
        )


@dataclass(frozen=True)
class MasteryCard:
    """
    A generated micro study card attached to a source question.

    Attributes:
        id: Stable card identity, shared with the SRS id space.
        parent_id: Id of the question this card was generated from.
        kind: Layer name (Pathophysiology, Diagnosis, Management, Differentiator).
    """

    id: str
    parent_id: str
    kind: str
    front: str
    back: str


@dataclass(frozen=True)
class AnswerDetail:
    question_id: str
    is_correct: bool


@dataclass(frozen=True)
class SessionRecord:
    """
    One completed (or early-terminated) study block.

    Attributes:
        timestamp: Creation time, epoch milliseconds.
        time_taken_ms: Active time only; backgrounded time is excluded.
        complexity: Difficulty label the block was generated with.
        details: One entry per answered question, in answer order.
    """

    id: str
    timestamp: int
    total_questions: int
    correct_answers: int
    time_taken_ms: int
    specialties: tuple[str, ...] = ()
    exam_types: tuple[str, ...] = ()
    complexity: str | None = None
    details: tuple[AnswerDetail, ...] = ()

    @property
    def is_consistent(self) -> bool:
        return (
            self.total_questions > 0
            and 0 <= self.correct_answers <= self.total_questions
            and len(self.details) == self.total_questions
        )


@dataclass(frozen=True)
class LifetimeStats:
    """
    Derived totals over the whole session history.

    Always reconstructable from history; persisted only as a cache.
    ``first_session_date`` is None when there is no history.
    """

    total_questions: int = 0
    total_correct: int = 0
    total_hours: float = 0.0
    avg_accuracy: int = 0
    first_session_date: int | None = None


def meta_index(library: Mapping[str, Question]) -> dict[str, QuestionMeta]:
    """Project a question library down to the metadata analytics needs."""
    return {qid: q.meta for qid, q in library.items()}
