"""
Topic aggregation: map free-text question tags onto canonical topic keys
and tally correctness per key.

This is a pure computation module with no I/O.
"""

from collections.abc import Iterable, Mapping, Sequence

from clinrev.domain.constants import BROAD_SYSTEM_TERMS, IGNORED_TAG_TERMS
from clinrev.domain.models import QuestionMeta, SessionRecord
from clinrev.domain.stats.models import TopicStat


def _matches_any(tag: str, terms: Sequence[str]) -> bool:
    lowered = tag.lower()
    return any(term in lowered for term in terms)


def canonical_topic(
    tags: Sequence[str],
    ignored: Sequence[str] = IGNORED_TAG_TERMS,
    broad: Sequence[str] = BROAD_SYSTEM_TERMS,
) -> str | None:
    """
    Pick the single most specific tag to aggregate a question under.

    Tags are scanned in order. Exam/meta labels are skipped. The first
    specific tag wins immediately; the first broad-system tag is kept as a
    fallback for questions with nothing more specific.

    >>> canonical_topic(["Step 2", "Cardiology", "Aortic Dissection"])
    'Aortic Dissection'
    >>> canonical_topic(["USMLE", "Surgery"])
    'Surgery'
    >>> canonical_topic(["NBME", "Step 1"]) is None
    True
    """
    fallback: str | None = None
    for tag in tags:
        if _matches_any(tag, ignored):
            continue
        if _matches_any(tag, broad):
            if fallback is None:
                fallback = tag
            continue
        return tag
    return fallback


def topic_keys(meta: QuestionMeta) -> list[str]:
    """
    Bucket keys one answered question contributes to.

    A question with a topic and concepts fans out to one "<topic>: <concept>"
    key per concept. Duplicates are collapsed; order follows the concepts.
    """
    topic = canonical_topic(meta.tags)
    concepts = meta.clinical_concepts

    if topic:
        if concepts:
            keys = [f"{topic}: {concept}" for concept in concepts]
        else:
            keys = [topic]
    else:
        keys = list(concepts)

    return list(dict.fromkeys(keys))


class TopicAggregator:
    """
    Accumulates TopicStat buckets from answered questions.

    Feed sessions oldest first so that each bucket's recency buffer ends
    up most-recent-first.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, TopicStat] = {}
        self.exposures = 0

    @property
    def buckets(self) -> Mapping[str, TopicStat]:
        return self._buckets

    def add_answer(self, meta: QuestionMeta, is_correct: bool) -> None:
        for key in topic_keys(meta):
            self._buckets.setdefault(key, TopicStat()).record(is_correct)
            self.exposures += 1

    def add_sessions(
        self,
        sessions: Iterable[SessionRecord],
        metadata: Mapping[str, QuestionMeta],
    ) -> "TopicAggregator":
        """Tally every detail of the given sessions; details without metadata are skipped."""
        for session in sessions:
            for detail in session.details:
                meta = metadata.get(detail.question_id)
                if meta is None:
                    continue
                self.add_answer(meta, detail.is_correct)
        return self
