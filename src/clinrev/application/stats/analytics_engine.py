"""
Analytics engine for deriving weakness/strength signals from session history.

Every view is recomputed from the full history on each call; nothing is
cached between calls, so re-sorting and re-filtering are always consistent
with the snapshot passed in. This is a pure computation module with no I/O.
"""

import calendar
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date, timedelta

from clinrev.domain.constants import (
    DEFAULT_TOPIC_LIMIT,
    HEATMAP_MONTHS,
    LOW_SAMPLE_THRESHOLD,
    MOMENTUM_DELTA,
    MS_PER_SECOND,
)
from clinrev.domain.clock import to_utc_date
from clinrev.domain.models import CognitiveLevel, LifetimeStats, QuestionMeta, SessionRecord
from clinrev.domain.stats.models import (
    ActivityHeatmap,
    AnalyticsReport,
    CategoryStat,
    HeatmapDay,
    LifetimeSummary,
    Momentum,
    RankedTopic,
    SortMode,
    TimelinePoint,
    TopicStat,
    percent,
)

from .lifetime import round_half_up, summarize_lifetime
from .topic_aggregator import TopicAggregator

logger = logging.getLogger(__name__)


def chronological(history: Iterable[SessionRecord]) -> list[SessionRecord]:
    """Oldest first. Sessions sharing a timestamp keep their relative order."""
    return sorted(history, key=lambda s: s.timestamp)


def months_before(day: date, months: int) -> date:
    """Same calendar day ``months`` earlier, clamped to the end of a shorter month."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


class AnalyticsEngine:
    """
    Produces ranked topic views, rollups, trends and lifetime summaries.

    Stateless apart from its thresholds, and side-effect free.
    """

    def __init__(
        self,
        low_sample_threshold: int = LOW_SAMPLE_THRESHOLD,
        momentum_delta: int = MOMENTUM_DELTA,
        topic_limit: int = DEFAULT_TOPIC_LIMIT,
        heatmap_months: int = HEATMAP_MONTHS,
    ):
        self.low_sample_threshold = low_sample_threshold
        self.momentum_delta = momentum_delta
        self.topic_limit = topic_limit
        self.heatmap_months = heatmap_months

    # ------------------------------------------------------------------
    # Topic ranking
    # ------------------------------------------------------------------

    def topic_stats(
        self,
        history: Sequence[SessionRecord],
        metadata: Mapping[str, QuestionMeta],
    ) -> dict[str, TopicStat]:
        aggregator = TopicAggregator().add_sessions(chronological(history), metadata)
        return dict(aggregator.buckets)

    def momentum(self, stat: TopicStat) -> Momentum:
        if stat.recent_accuracy > stat.accuracy + self.momentum_delta:
            return Momentum.IMPROVING
        if stat.recent_accuracy < stat.accuracy - self.momentum_delta:
            return Momentum.DECLINING
        return Momentum.NEUTRAL

    def rank(self, buckets: Mapping[str, TopicStat], sort: SortMode | str) -> list[RankedTopic]:
        """
        Order buckets for display.

        weakness/strength put buckets with enough samples first, then order
        by accuracy (ascending/descending) and by volume. urgency orders by
        volume-weighted error rate. alpha orders by name. Name is the final
        tie-break in every mode.
        """
        sort = SortMode(sort)
        topics = [self._ranked(name, stat) for name, stat in buckets.items()]

        key: Callable[[RankedTopic], tuple]
        if sort is SortMode.WEAKNESS:
            key = lambda t: (t.low_sample, t.accuracy, -t.total, t.name)  # noqa: E731
        elif sort is SortMode.STRENGTH:
            key = lambda t: (t.low_sample, -t.accuracy, -t.total, t.name)  # noqa: E731
        elif sort is SortMode.URGENCY:
            key = lambda t: (-t.urgency, t.accuracy, t.name)  # noqa: E731
        else:
            key = lambda t: (t.name.casefold(), t.name)  # noqa: E731

        return sorted(topics, key=key)

    def _ranked(self, name: str, stat: TopicStat) -> RankedTopic:
        return RankedTopic(
            name=name,
            correct=stat.correct_count,
            total=stat.total_count,
            accuracy=stat.accuracy,
            recent_accuracy=stat.recent_accuracy,
            urgency=stat.urgency,
            momentum=self.momentum(stat),
            low_sample=stat.total_count < self.low_sample_threshold,
        )

    def ranked_topics(
        self,
        history: Sequence[SessionRecord],
        metadata: Mapping[str, QuestionMeta],
        sort: SortMode | str = SortMode.WEAKNESS,
        query: str | None = None,
        limit: int | None = None,
    ) -> tuple[RankedTopic, ...]:
        """
        Ranked topic buckets, optionally filtered by a case-insensitive substring.

        Without a query the list is capped at ``topic_limit``; with a query
        every match is returned. An explicit ``limit`` overrides both.
        """
        ranked = self.rank(self.topic_stats(history, metadata), sort)

        if query:
            needle = query.lower()
            ranked = [t for t in ranked if needle in t.name.lower()]

        if limit is None and not query:
            limit = self.topic_limit
        if limit is not None:
            ranked = ranked[:limit]

        return tuple(ranked)

    # ------------------------------------------------------------------
    # Rollups
    # ------------------------------------------------------------------

    def concept_rollup(
        self,
        history: Sequence[SessionRecord],
        metadata: Mapping[str, QuestionMeta],
    ) -> tuple[CategoryStat, ...]:
        """Per clinical concept, most-encountered first."""
        counts: dict[str, list[int]] = {}
        for session in history:
            for detail in session.details:
                meta = metadata.get(detail.question_id)
                if meta is None:
                    continue
                for concept in meta.clinical_concepts:
                    tally = counts.setdefault(concept, [0, 0])
                    tally[1] += 1
                    if detail.is_correct:
                        tally[0] += 1
        return self._categories(counts)

    def specialty_rollup(self, history: Sequence[SessionRecord]) -> tuple[CategoryStat, ...]:
        return self._session_rollup(history, lambda s: s.specialties)

    def exam_type_rollup(self, history: Sequence[SessionRecord]) -> tuple[CategoryStat, ...]:
        return self._session_rollup(history, lambda s: s.exam_types)

    def complexity_rollup(self, history: Sequence[SessionRecord]) -> tuple[CategoryStat, ...]:
        return self._session_rollup(
            history, lambda s: (s.complexity,) if s.complexity else ()
        )

    def cognitive_rollup(
        self,
        history: Sequence[SessionRecord],
        metadata: Mapping[str, QuestionMeta],
    ) -> tuple[CategoryStat, ...]:
        """Per cognitive level in fixed order; levels never seen are omitted."""
        counts = {level: [0, 0] for level in CognitiveLevel}
        for session in history:
            for detail in session.details:
                meta = metadata.get(detail.question_id)
                if meta is None or meta.cognitive_level is None:
                    continue
                tally = counts[meta.cognitive_level]
                tally[1] += 1
                if detail.is_correct:
                    tally[0] += 1

        return tuple(
            CategoryStat(
                name=level.value,
                correct=correct,
                total=total,
                accuracy=percent(correct, total),
            )
            for level, (correct, total) in counts.items()
            if total > 0
        )

    def _session_rollup(
        self,
        history: Sequence[SessionRecord],
        labels: Callable[[SessionRecord], Iterable[str]],
    ) -> tuple[CategoryStat, ...]:
        counts: dict[str, list[int]] = {}
        for session in history:
            for label in dict.fromkeys(labels(session)):
                tally = counts.setdefault(label, [0, 0])
                tally[0] += session.correct_answers
                tally[1] += session.total_questions
        return self._categories(counts)

    @staticmethod
    def _categories(counts: Mapping[str, list[int]]) -> tuple[CategoryStat, ...]:
        stats = [
            CategoryStat(name=name, correct=correct, total=total, accuracy=percent(correct, total))
            for name, (correct, total) in counts.items()
            if total > 0
        ]
        stats.sort(key=lambda c: (-c.total, c.name))
        return tuple(stats)

    # ------------------------------------------------------------------
    # Trends
    # ------------------------------------------------------------------

    def timeline(self, history: Sequence[SessionRecord]) -> tuple[TimelinePoint, ...]:
        points = []
        for index, session in enumerate(chronological(history), start=1):
            per_question = 0
            if session.total_questions > 0:
                per_question = int(
                    round_half_up(session.time_taken_ms / MS_PER_SECOND / session.total_questions)
                )
            points.append(
                TimelinePoint(
                    label=f"S{index}",
                    timestamp=session.timestamp,
                    date=to_utc_date(session.timestamp).isoformat(),
                    accuracy=percent(session.correct_answers, session.total_questions),
                    time_per_question_sec=per_question,
                )
            )
        return tuple(points)

    def activity_heatmap(self, history: Sequence[SessionRecord], now: int) -> ActivityHeatmap:
        """
        Questions answered per UTC day over the trailing window, zero-filled.

        The window runs from the same calendar day ``heatmap_months`` ago
        through today, inclusive.
        """
        today = to_utc_date(now)
        start = months_before(today, self.heatmap_months)

        counts: dict[date, int] = {}
        day = start
        while day <= today:
            counts[day] = 0
            day += timedelta(days=1)

        for session in history:
            session_day = to_utc_date(session.timestamp)
            if session_day in counts:
                counts[session_day] += session.total_questions

        days = tuple(HeatmapDay(date=d.isoformat(), count=c) for d, c in counts.items())
        return ActivityHeatmap(days=days, max_daily_count=max([*counts.values(), 1]))

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def lifetime_summary(
        self,
        history: Sequence[SessionRecord],
        now: int,
        stats: LifetimeStats | None = None,
    ) -> LifetimeSummary:
        return summarize_lifetime(history, now, stats)

    def report(
        self,
        history: Sequence[SessionRecord],
        metadata: Mapping[str, QuestionMeta],
        now: int,
        sort: SortMode | str = SortMode.WEAKNESS,
        query: str | None = None,
        stats: LifetimeStats | None = None,
    ) -> AnalyticsReport | None:
        """
        Build every view at once.

        Returns None for an empty history, the "no data" state.
        """
        if not history:
            return None

        malformed = sum(1 for s in history if not s.is_consistent)
        if malformed:
            logger.warning(f"{malformed} session(s) have inconsistent totals or details")

        return AnalyticsReport(
            lifetime=self.lifetime_summary(history, now, stats),
            topics=self.ranked_topics(history, metadata, sort, query),
            concepts=self.concept_rollup(history, metadata),
            specialties=self.specialty_rollup(history),
            exam_types=self.exam_type_rollup(history),
            complexities=self.complexity_rollup(history),
            cognitive_levels=self.cognitive_rollup(history, metadata),
            timeline=self.timeline(history),
            heatmap=self.activity_heatmap(history, now),
        )
