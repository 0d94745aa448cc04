"""
Insights Models

Structured shapes for the LLM-generated narrative insights and their cache.
The LLM is asked to answer in exactly these shapes; anything that does not
validate is discarded in favour of fallback insights.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InsightType(str, Enum):
    OVERVIEW = "overview"
    MONTHLY = "monthly"


class InsightItem(BaseModel):
    """One insight card."""

    id: str
    title: str = Field(..., max_length=200)
    description: str
    category: Literal["spending", "budget", "savings", "prediction", "health"]
    severity: Optional[Literal["info", "warning", "success", "critical"]] = None
    actionable: bool = False


class OverviewInsights(BaseModel):
    """Insights across every month the user has tracked."""

    financial_health_score: int = Field(
        ...,
        ge=0,
        le=100,
        description="0-100 score based on savings rate, expense control and trends"
    )
    summary: str
    insights: list[InsightItem] = Field(default_factory=list)
    predictions: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_now)


class CategoryChange(BaseModel):
    category: str
    change: float = Field(..., description="Percentage change vs previous month")
    direction: Literal["up", "down"]


class MonthComparison(BaseModel):
    previous_month: Optional[str] = None
    changes: list[CategoryChange] = Field(default_factory=list)


class MonthlyInsights(BaseModel):
    """Insights for a single month, optionally compared with the previous one."""

    month_summary: str
    insights: list[InsightItem] = Field(default_factory=list)
    comparisons: MonthComparison = Field(default_factory=MonthComparison)
    recommendations: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_now)


class InsightsCacheEntry(BaseModel):
    """
    A cached insights payload.

    An entry is served only while unexpired AND while its `data_snapshot`
    hash still matches the data the caller is asking about.
    """

    user_id: str
    cache_key: str
    insight_type: InsightType
    month_id: Optional[str] = None
    insights: dict[str, Any]
    data_snapshot: str = Field(..., description="sha256 of the data the insights describe")
    generated_at: datetime = Field(default_factory=_now)
    expires_at: datetime

    def is_fresh(self, now: datetime, data_snapshot: str) -> bool:
        return self.expires_at > now and self.data_snapshot == data_snapshot
