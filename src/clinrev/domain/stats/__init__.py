# Domain Stats Package
from .models import (
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
)

__all__ = [
    "TopicStat",
    "RankedTopic",
    "CategoryStat",
    "TimelinePoint",
    "HeatmapDay",
    "ActivityHeatmap",
    "LifetimeSummary",
    "AnalyticsReport",
    "SortMode",
    "Momentum",
]
