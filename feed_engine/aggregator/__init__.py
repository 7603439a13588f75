"""Multi-source aggregation and snapshot queries."""

from .interfaces import (
    AggregatedResponse, AggregatorSnapshot, AggregatorState, FilterParams,
    RefreshResult, SortKey,
)
from .aggregator import Aggregator, SNAPSHOT_CACHE_KEY, deduplicate, merge_tags, normalize_title

__all__ = [
    "AggregatedResponse", "AggregatorSnapshot", "AggregatorState", "FilterParams",
    "RefreshResult", "SortKey", "Aggregator", "SNAPSHOT_CACHE_KEY",
    "deduplicate", "merge_tags", "normalize_title",
]
