"""
Wire schema for persisted state and full-state backups.

Keys are camelCase and instants are epoch milliseconds, matching the
backup files the study app has always written. Each schema converts to
and from the frozen domain dataclasses.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from clinrev.domain.constants import INITIAL_EASE, MIN_EASE
from clinrev.domain.errors import SnapshotValidationError
from clinrev.domain.models import (
    AnswerDetail,
    CognitiveLevel,
    LifetimeStats,
    MasteryCard,
    Question,
    SessionRecord,
)
from clinrev.domain.srs.models import ReviewCard

SNAPSHOT_KEYS = (
    "history",
    "bookmarks",
    "masteryCards",
    "srsStates",
    "questionLibrary",
    "studyPlan",
    "lifetimeStats",
)


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class AnswerDetailSchema(_Schema):
    question_id: str = Field(alias="questionId")
    is_correct: bool = Field(alias="isCorrect")


class SessionSchema(_Schema):
    id: str
    timestamp: int
    total_questions: int = Field(alias="totalQuestions", ge=0)
    correct_answers: int = Field(alias="correctAnswers", ge=0)
    time_taken_ms: int = Field(default=0, alias="timeTakenMs", ge=0)
    specialties: list[str] = Field(default_factory=list)
    exam_types: list[str] = Field(default_factory=list, alias="examTypes")
    complexity: str | None = None
    details: list[AnswerDetailSchema] = Field(default_factory=list)

    @field_validator("specialties", "exam_types", "details", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_domain(self) -> SessionRecord:
        return SessionRecord(
            id=self.id,
            timestamp=self.timestamp,
            total_questions=self.total_questions,
            correct_answers=self.correct_answers,
            time_taken_ms=self.time_taken_ms,
            specialties=tuple(self.specialties),
            exam_types=tuple(self.exam_types),
            complexity=self.complexity,
            details=tuple(
                AnswerDetail(question_id=d.question_id, is_correct=d.is_correct)
                for d in self.details
            ),
        )

    @classmethod
    def from_domain(cls, session: SessionRecord) -> "SessionSchema":
        return cls(
            id=session.id,
            timestamp=session.timestamp,
            total_questions=session.total_questions,
            correct_answers=session.correct_answers,
            time_taken_ms=session.time_taken_ms,
            specialties=list(session.specialties),
            exam_types=list(session.exam_types),
            complexity=session.complexity,
            details=[
                AnswerDetailSchema(question_id=d.question_id, is_correct=d.is_correct)
                for d in session.details
            ],
        )


class QuestionSchema(_Schema):
    """Unknown keys (deep-dive text, explanations in newer shapes) are kept verbatim."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    vignette: str = ""
    options: list[str] = Field(default_factory=list)
    correct_index: int = Field(alias="correctIndex")
    tags: list[str] = Field(default_factory=list)
    clinical_concepts: list[str] = Field(default_factory=list, alias="clinicalConcepts")
    cognitive_level: str | None = Field(default=None, alias="cognitiveLevel")
    explanation: Any = None

    @field_validator("options", "tags", "clinical_concepts", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_domain(self) -> Question:
        try:
            level = CognitiveLevel(self.cognitive_level) if self.cognitive_level else None
        except ValueError:
            level = None
        return Question(
            id=self.id,
            vignette=self.vignette,
            options=tuple(self.options),
            correct_index=self.correct_index,
            tags=tuple(self.tags),
            clinical_concepts=tuple(self.clinical_concepts),
            cognitive_level=level,
            explanation=self.explanation,
            extras=dict(self.model_extra or {}),
        )

    @classmethod
    def from_domain(cls, question: Question) -> "QuestionSchema":
        return cls(
            id=question.id,
            vignette=question.vignette,
            options=list(question.options),
            correct_index=question.correct_index,
            tags=list(question.tags),
            clinical_concepts=list(question.clinical_concepts),
            cognitive_level=question.cognitive_level.value if question.cognitive_level else None,
            explanation=question.explanation,
            **dict(question.extras),
        )


class MasteryCardSchema(_Schema):
    id: str
    kind: str = Field(alias="type")
    front: str
    back: str
    parent_id: str = Field(alias="parentId")

    def to_domain(self) -> MasteryCard:
        return MasteryCard(
            id=self.id, parent_id=self.parent_id, kind=self.kind, front=self.front, back=self.back
        )

    @classmethod
    def from_domain(cls, card: MasteryCard) -> "MasteryCardSchema":
        return cls(
            id=card.id, parent_id=card.parent_id, kind=card.kind, front=card.front, back=card.back
        )


class SrsStateSchema(_Schema):
    card_id: str = Field(alias="cardId")
    next_review: int = Field(default=0, alias="nextReview")
    interval: int = Field(default=0, ge=0)
    ease: float = INITIAL_EASE
    repetitions: int = Field(default=0, ge=0)

    @field_validator("ease")
    @classmethod
    def ease_floor(cls, v: float) -> float:
        return max(MIN_EASE, v)

    def to_domain(self) -> ReviewCard:
        return ReviewCard(
            card_id=self.card_id,
            next_review_at=self.next_review,
            interval_days=self.interval,
            ease_factor=self.ease,
            repetition_count=self.repetitions,
        )

    @classmethod
    def from_domain(cls, card: ReviewCard) -> "SrsStateSchema":
        return cls(
            card_id=card.card_id,
            next_review=card.next_review_at,
            interval=card.interval_days,
            ease=card.ease_factor,
            repetitions=card.repetition_count,
        )


class LifetimeStatsSchema(_Schema):
    total_questions: int = Field(default=0, alias="totalQuestions")
    total_correct: int = Field(default=0, alias="totalCorrect")
    total_hours: float = Field(default=0.0, alias="totalHours")
    avg_accuracy: int = Field(default=0, alias="avgAccuracy")
    first_session_date: int | None = Field(default=None, alias="firstSessionDate")

    def to_domain(self) -> LifetimeStats:
        return LifetimeStats(
            total_questions=self.total_questions,
            total_correct=self.total_correct,
            total_hours=self.total_hours,
            avg_accuracy=self.avg_accuracy,
            first_session_date=self.first_session_date,
        )

    @classmethod
    def from_domain(cls, stats: LifetimeStats) -> "LifetimeStatsSchema":
        return cls(
            total_questions=stats.total_questions,
            total_correct=stats.total_correct,
            total_hours=stats.total_hours,
            avg_accuracy=stats.avg_accuracy,
            first_session_date=stats.first_session_date,
        )


class StudySnapshot(_Schema):
    """
    Full application state.

    Missing or null keys fall back to empty defaults; ``lifetime_stats``
    stays None unless present, it is never invented here.
    """

    history: list[SessionSchema] = Field(default_factory=list)
    bookmarks: list[QuestionSchema] = Field(default_factory=list)
    mastery_cards: dict[str, list[MasteryCardSchema]] = Field(
        default_factory=dict, alias="masteryCards"
    )
    srs_states: dict[str, SrsStateSchema] = Field(default_factory=dict, alias="srsStates")
    question_library: dict[str, QuestionSchema] = Field(
        default_factory=dict, alias="questionLibrary"
    )
    study_plan: Any = Field(default=None, alias="studyPlan")
    lifetime_stats: LifetimeStatsSchema | None = Field(default=None, alias="lifetimeStats")

    @field_validator("history", "bookmarks", mode="before")
    @classmethod
    def none_as_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("mastery_cards", "srs_states", "question_library", mode="before")
    @classmethod
    def none_as_empty_dict(cls, v: Any) -> Any:
        return {} if v is None else v

    def sessions(self) -> list[SessionRecord]:
        return [s.to_domain() for s in self.history]

    def library(self) -> dict[str, Question]:
        return {qid: q.to_domain() for qid, q in self.question_library.items()}

    def review_cards(self) -> dict[str, ReviewCard]:
        return {cid: s.to_domain() for cid, s in self.srs_states.items()}

    def mastery(self) -> dict[str, list[MasteryCard]]:
        return {pid: [c.to_domain() for c in cards] for pid, cards in self.mastery_cards.items()}

    def storage_values(self) -> dict[str, Any]:
        """Per-key JSON values as written to the key-value store."""
        dumped = self.to_json()
        return {key: dumped[key] for key in SNAPSHOT_KEYS}


def parse_snapshot(raw: str | bytes | Any) -> StudySnapshot:
    """
    Validate a backup payload.

    Accepts JSON text or an already-decoded value. The payload must be a
    JSON object and every entry must match the schema; otherwise the whole
    snapshot is rejected.

    Raises:
        SnapshotValidationError: On unparseable text, a non-object payload
            or a schema violation.
    """
    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SnapshotValidationError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise SnapshotValidationError("Invalid backup format: expected a JSON object")

    try:
        return StudySnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotValidationError(f"Invalid backup format: {e}") from e


def dump_sessions(sessions: list[SessionRecord] | tuple[SessionRecord, ...]) -> list[dict]:
    return [SessionSchema.from_domain(s).to_json() for s in sessions]


def load_sessions(raw: Any) -> list[SessionRecord]:
    return [SessionSchema.model_validate(s).to_domain() for s in raw or []]
