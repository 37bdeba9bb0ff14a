"""
Service Factory
Centralizes construction of the store, repository and analytics engine from config.
"""

from clinrev.application.config import AppConfig
from clinrev.application.stats.analytics_engine import AnalyticsEngine
from clinrev.application.study_data import StudyDataRepository
from clinrev.domain.ports import KeyValueStore
from clinrev.infrastructure.persistence.json_store import JsonFileKeyValueStore


def get_store(config: AppConfig) -> KeyValueStore:
    return JsonFileKeyValueStore(config.data_file)


def get_repository(config: AppConfig) -> StudyDataRepository:
    return StudyDataRepository(get_store(config))


def get_analytics_engine(config: AppConfig) -> AnalyticsEngine:
    return AnalyticsEngine(
        low_sample_threshold=config.low_sample_threshold,
        momentum_delta=config.momentum_delta,
        topic_limit=config.topic_limit,
        heatmap_months=config.heatmap_months,
    )
