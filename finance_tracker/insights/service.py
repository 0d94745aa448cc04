"""
Insights Cache Service

Generated insights are expensive (one LLM call each), so they are cached
per user:

    overview-{user_id}               insights across all months
    monthly-{user_id}-{month_id}     insights for one month

A cached entry is served only while it is unexpired AND its data snapshot
(sha256 of the canonical JSON of the months it describes) still matches
the current data. Any ledger edit changes the snapshot, so stale insights
are regenerated without explicit invalidation.
"""

import hashlib
import json
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import structlog

from finance_tracker.agents.insights_agent import InsightsAgent, build_month_snapshot
from finance_tracker.audit import AuditLogger
from finance_tracker.config import get_settings
from finance_tracker.models.insights import (
    InsightsCacheEntry,
    InsightType,
    MonthlyInsights,
    OverviewInsights,
)
from finance_tracker.models.ledger import Month, utc_now
from finance_tracker.services.storage import InsightsCacheStorageInterface


logger = structlog.get_logger(__name__)


def overview_cache_key(user_id: str) -> str:
    return f"overview-{user_id}"


def monthly_cache_key(user_id: str, month_id: str) -> str:
    return f"monthly-{user_id}-{month_id}"


def data_snapshot(data: Any) -> str:
    """sha256 hex digest of `data` serialized as canonical JSON."""
    canonical = json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class InsightsService:
    """
    Serves overview and monthly insights through the cache.

    Cache reads and writes propagate storage errors. Clearing the cache
    never raises: a failed clear is logged and reported as zero deletions.
    """

    def __init__(
        self,
        agent: InsightsAgent,
        cache_storage: InsightsCacheStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        ttl_hours: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._agent = agent
        self._cache = cache_storage
        self._audit = audit_logger
        if ttl_hours is None:
            ttl_hours = get_settings().app.insights_cache_ttl_hours
        self._ttl = timedelta(hours=ttl_hours)
        self._clock = clock or utc_now

    async def _audit_served(
        self,
        user_id: str,
        insight_type: InsightType,
        cache_hit: bool,
        month_id: Optional[str] = None,
    ) -> None:
        if self._audit:
            await self._audit.log_insights_served(
                user_id=user_id,
                insight_type=insight_type.value,
                cache_hit=cache_hit,
                month_id=month_id,
            )

    async def _cached(self, user_id: str, cache_key: str, snapshot: str) -> Optional[dict]:
        entry = await self._cache.get_entry(user_id, cache_key)
        if entry is not None and entry.is_fresh(self._clock(), snapshot):
            return entry.insights
        return None

    async def _store(
        self,
        user_id: str,
        cache_key: str,
        insight_type: InsightType,
        insights: dict,
        snapshot: str,
        month_id: Optional[str] = None,
    ) -> None:
        now = self._clock()
        await self._cache.upsert_entry(InsightsCacheEntry(
            user_id=user_id,
            cache_key=cache_key,
            insight_type=insight_type,
            month_id=month_id,
            insights=insights,
            data_snapshot=snapshot,
            generated_at=now,
            expires_at=now + self._ttl,
        ))

    # =========================================================================
    # OVERVIEW
    # =========================================================================

    async def get_overview_insights(
        self,
        user_id: str,
        months: list[Month],
    ) -> OverviewInsights:
        """
        Overview insights for all of a user's months (oldest first).
        """
        cache_key = overview_cache_key(user_id)
        snapshot = data_snapshot([build_month_snapshot(m) for m in months])

        cached = await self._cached(user_id, cache_key, snapshot)
        if cached is not None:
            logger.info("insights_cache_hit", cache_key=cache_key)
            await self._audit_served(user_id, InsightType.OVERVIEW, cache_hit=True)
            return OverviewInsights.model_validate(cached)

        logger.info("insights_cache_miss", cache_key=cache_key)
        insights = await self._agent.generate_overview_insights(user_id, months)
        await self._store(
            user_id,
            cache_key,
            InsightType.OVERVIEW,
            insights.model_dump(mode="json"),
            snapshot,
        )
        await self._audit_served(user_id, InsightType.OVERVIEW, cache_hit=False)
        return insights

    async def regenerate_overview_insights(
        self,
        user_id: str,
        months: list[Month],
    ) -> OverviewInsights:
        """Drop the cached overview and generate a fresh one."""
        await self._cache.delete_entry(user_id, overview_cache_key(user_id))
        return await self.get_overview_insights(user_id, months)

    # =========================================================================
    # MONTHLY
    # =========================================================================

    async def get_monthly_insights(
        self,
        user_id: str,
        month: Month,
        previous: Optional[Month] = None,
    ) -> MonthlyInsights:
        """
        Insights for one month, compared with `previous` when given.
        """
        cache_key = monthly_cache_key(user_id, month.id)
        snapshot = data_snapshot({
            "month": build_month_snapshot(month),
            "previous": build_month_snapshot(previous) if previous else None,
        })

        cached = await self._cached(user_id, cache_key, snapshot)
        if cached is not None:
            logger.info("insights_cache_hit", cache_key=cache_key)
            await self._audit_served(user_id, InsightType.MONTHLY, True, month.id)
            return MonthlyInsights.model_validate(cached)

        logger.info("insights_cache_miss", cache_key=cache_key)
        insights = await self._agent.generate_monthly_insights(user_id, month, previous)
        await self._store(
            user_id,
            cache_key,
            InsightType.MONTHLY,
            insights.model_dump(mode="json"),
            snapshot,
            month_id=month.id,
        )
        await self._audit_served(user_id, InsightType.MONTHLY, False, month.id)
        return insights

    async def regenerate_monthly_insights(
        self,
        user_id: str,
        month: Month,
        previous: Optional[Month] = None,
    ) -> MonthlyInsights:
        await self._cache.delete_entry(user_id, monthly_cache_key(user_id, month.id))
        return await self.get_monthly_insights(user_id, month, previous)

    # =========================================================================
    # INVALIDATION
    # =========================================================================

    async def clear_user_cache(self, user_id: str) -> int:
        """
        Clear all cached insights for a user (overview + all months).

        Returns the number of entries deleted.
        """
        try:
            deleted = await self._cache.delete_user_entries(user_id)
        except Exception as e:
            logger.error("insights_cache_clear_failed", user_id=user_id, error=str(e))
            return 0

        logger.info("insights_cache_cleared", user_id=user_id, deleted=deleted)
        if self._audit:
            await self._audit.log_insights_cache_cleared(user_id, deleted)
        return deleted

    async def clear_month_cache(self, user_id: str, month_id: str) -> int:
        """
        Clear one month's cached insights and the user's overview,
        since the month's data feeds both.
        """
        deleted = 0
        try:
            for cache_key in (monthly_cache_key(user_id, month_id), overview_cache_key(user_id)):
                if await self._cache.delete_entry(user_id, cache_key):
                    deleted += 1
        except Exception as e:
            logger.error(
                "insights_cache_clear_failed",
                user_id=user_id,
                month_id=month_id,
                error=str(e),
            )
            return deleted

        logger.info("insights_cache_cleared", user_id=user_id, month_id=month_id, deleted=deleted)
        if self._audit:
            await self._audit.log_insights_cache_cleared(user_id, deleted, month_id)
        return deleted
