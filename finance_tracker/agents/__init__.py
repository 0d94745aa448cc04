"""AI Agents package."""

from finance_tracker.agents.insights_agent import (
    InsightsAgent,
    build_month_snapshot,
    summarize_months,
)

__all__ = [
    "InsightsAgent",
    "build_month_snapshot",
    "summarize_months",
]
