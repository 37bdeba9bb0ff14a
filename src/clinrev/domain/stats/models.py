"""
Domain models for performance analytics.

These are pure data structures with no I/O or external dependencies.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from clinrev.domain.constants import RECENCY_WINDOW
from clinrev.domain.models import LifetimeStats


class SortMode(str, Enum):
    WEAKNESS = "weakness"
    STRENGTH = "strength"
    ALPHA = "alpha"
    URGENCY = "urgency"


class Momentum(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    NEUTRAL = "neutral"


def percent(correct: int, total: int) -> int:
    """
    Integer percentage, rounded half up.

    Returns 0 for a non-positive denominator so degenerate data renders as
    a neutral value instead of raising.
    """
    if total <= 0:
        return 0
    return math.floor(correct / total * 100 + 0.5)


@dataclass
class TopicStat:
    """
    Running tally for one topic bucket during a single analytics pass.

    ``recent`` holds the last few outcomes, most recent first.
    """

    correct_count: int = 0
    total_count: int = 0
    recent: deque[bool] = field(default_factory=lambda: deque(maxlen=RECENCY_WINDOW))

    def record(self, is_correct: bool) -> None:
        self.total_count += 1
        if is_correct:
            self.correct_count += 1
        self.recent.appendleft(is_correct)

    @property
    def accuracy(self) -> int:
        return percent(self.correct_count, self.total_count)

    @property
    def recent_accuracy(self) -> int:
        if not self.recent:
            return self.accuracy
        return percent(sum(self.recent), len(self.recent))

    @property
    def urgency(self) -> float:
        return self.total_count * (1 - self.accuracy / 100)


@dataclass(frozen=True)
class RankedTopic:
    name: str
    correct: int
    total: int
    accuracy: int
    recent_accuracy: int
    urgency: float
    momentum: Momentum
    low_sample: bool


@dataclass(frozen=True)
class CategoryStat:
    name: str
    correct: int
    total: int
    accuracy: int


@dataclass(frozen=True)
class TimelinePoint:
    """One session on the trend line (chronological index starts at 1)."""

    label: str
    timestamp: int
    date: str
    accuracy: int
    time_per_question_sec: int


@dataclass(frozen=True)
class HeatmapDay:
    date: str  # ISO yyyy-mm-dd, UTC
    count: int


@dataclass(frozen=True)
class ActivityHeatmap:
    days: tuple[HeatmapDay, ...]
    max_daily_count: int

    def intensity(self, count: int) -> float:
        """Scale a daily count to 0.0-1.0 relative to the busiest day."""
        return count / max(self.max_daily_count, 1)


@dataclass(frozen=True)
class LifetimeSummary:
    """
    Lifetime totals plus the derived consistency figures shown beside them.
    """

    stats: LifetimeStats
    session_count: int
    sessions_per_week: float
    avg_time_per_question_sec: int


@dataclass(frozen=True)
class AnalyticsReport:
    """Every derived view for one history snapshot."""

    lifetime: LifetimeSummary
    topics: tuple[RankedTopic, ...]
    concepts: tuple[CategoryStat, ...]
    specialties: tuple[CategoryStat, ...]
    exam_types: tuple[CategoryStat, ...]
    complexities: tuple[CategoryStat, ...]
    cognitive_levels: tuple[CategoryStat, ...]
    timeline: tuple[TimelinePoint, ...]
    heatmap: ActivityHeatmap
