"""Building SessionRecords from finished quiz blocks."""

from collections.abc import Sequence

from ulid import ULID

from clinrev.domain.clock import now_ms
from clinrev.domain.constants import MAX_ACTIVE_GAP_MS
from clinrev.domain.models import AnswerDetail, Question, SessionRecord


def generate_session_id() -> str:
    """Generate a unique, time-sortable session id using ULID."""
    return f"session_{ULID()}"


def build_session_record(
    questions: Sequence[Question],
    user_answers: Sequence[int | None],
    active_time_ms: int,
    specialties: Sequence[str] = (),
    exam_types: Sequence[str] = (),
    complexity: str | None = None,
    now: int | None = None,
) -> SessionRecord:
    """
    Score a finished (or abandoned) block.

    Only answered questions are recorded, so an early-terminated block
    yields a shorter session. Unanswered slots count as skipped, not wrong.
    """
    answered = [
        (q, answer) for q, answer in zip(questions, user_answers) if answer is not None
    ]
    details = tuple(
        AnswerDetail(question_id=q.id, is_correct=answer == q.correct_index)
        for q, answer in answered
    )

    return SessionRecord(
        id=generate_session_id(),
        timestamp=now if now is not None else now_ms(),
        total_questions=len(details),
        correct_answers=sum(1 for d in details if d.is_correct),
        time_taken_ms=max(0, active_time_ms),
        specialties=tuple(specialties),
        exam_types=tuple(exam_types),
        complexity=complexity,
        details=details,
    )


class ActiveTimer:
    """
    Accumulates foreground time across pause/resume cycles.

    A single foreground stretch longer than a day is discarded as clock drift.
    """

    def __init__(self, elapsed_ms: int = 0, started_at: int | None = None):
        self.elapsed_ms = elapsed_ms
        self._started_at = started_at

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def resume(self, now: int) -> None:
        if self._started_at is None:
            self._started_at = now

    def pause(self, now: int) -> None:
        if self._started_at is None:
            return
        delta = now - self._started_at
        if 0 < delta < MAX_ACTIVE_GAP_MS:
            self.elapsed_ms += delta
        self._started_at = None

    def stop(self, now: int) -> int:
        """Pause and return the total active time."""
        self.pause(now)
        return self.elapsed_ms
