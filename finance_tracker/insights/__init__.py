"""Insights caching package."""

from finance_tracker.insights.service import (
    InsightsService,
    data_snapshot,
    monthly_cache_key,
    overview_cache_key,
)

__all__ = [
    "InsightsService",
    "data_snapshot",
    "monthly_cache_key",
    "overview_cache_key",
]
