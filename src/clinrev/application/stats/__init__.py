# Application Stats Package
from .analytics_engine import AnalyticsEngine
from .lifetime import derive_lifetime_stats, summarize_lifetime
from .topic_aggregator import TopicAggregator, canonical_topic, topic_keys

__all__ = [
    "AnalyticsEngine",
    "TopicAggregator",
    "canonical_topic",
    "topic_keys",
    "derive_lifetime_stats",
    "summarize_lifetime",
]
