"""
Lifetime statistics over the full session history.

``derive_lifetime_stats`` is the single source for the persisted cache;
it never mutates its input and always returns a new value.
"""

import math
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from clinrev.domain.constants import MS_PER_HOUR, MS_PER_SECOND, MS_PER_WEEK
from clinrev.domain.models import LifetimeStats, SessionRecord
from clinrev.domain.stats.models import LifetimeSummary, percent


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def to_fixed(value: float, digits: int) -> float:
    """
    Round the exact binary value of ``value`` half up to ``digits`` places.

    0.35 is stored as 0.34999..., so it becomes 0.3, unlike ``round_half_up``.
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def derive_lifetime_stats(history: Sequence[SessionRecord]) -> LifetimeStats:
    """
    Sum totals across every session.

    Session-level counts come from ``total_questions``/``correct_answers``,
    never from ``details``. Empty history yields the all-zero value.
    """
    if not history:
        return LifetimeStats()

    total_questions = sum(s.total_questions for s in history)
    total_correct = sum(s.correct_answers for s in history)
    total_time_ms = sum(s.time_taken_ms for s in history)

    return LifetimeStats(
        total_questions=total_questions,
        total_correct=total_correct,
        total_hours=to_fixed(total_time_ms / MS_PER_HOUR, 1),
        avg_accuracy=percent(total_correct, total_questions),
        first_session_date=min(s.timestamp for s in history),
    )


def sessions_per_week(session_count: int, first_session_date: int | None, now: int) -> float:
    """Sessions divided by whole weeks since the first one (at least one week)."""
    if session_count == 0 or first_session_date is None:
        return 0.0
    weeks = max(1, math.ceil((now - first_session_date) / MS_PER_WEEK))
    return to_fixed(session_count / weeks, 1)


def summarize_lifetime(
    history: Sequence[SessionRecord],
    now: int,
    stats: LifetimeStats | None = None,
) -> LifetimeSummary:
    """
    Lifetime stats plus consistency and pacing.

    Args:
        history: Full session history.
        now: Reference instant (epoch ms) for the consistency window.
        stats: A cached LifetimeStats to reuse; derived from history if omitted.
    """
    stats = stats or derive_lifetime_stats(history)
    total_time_ms = sum(s.time_taken_ms for s in history)

    avg_time = 0
    if stats.total_questions > 0:
        avg_time = int(round_half_up(total_time_ms / MS_PER_SECOND / stats.total_questions))

    return LifetimeSummary(
        stats=stats,
        session_count=len(history),
        sessions_per_week=sessions_per_week(len(history), stats.first_session_date, now),
        avg_time_per_question_sec=avg_time,
    )
