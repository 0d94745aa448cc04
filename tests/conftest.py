"""
Shared fixtures.

All storage is in-memory and the LLM is replaced by a stub model, so no
test touches the network.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from finance_tracker.agents import InsightsAgent
from finance_tracker.audit import AuditLogger
from finance_tracker.insights import InsightsService
from finance_tracker.ledger import build_month
from finance_tracker.orchestrator import InsightsFlow, LedgerFlow
from finance_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryInsightsCacheStorage,
    InMemoryMonthStorage,
    InMemoryRecurringTemplateStorage,
)


USER = "user-1"


OVERVIEW_REPLY = {
    "financial_health_score": 72,
    "summary": "Healthy savings rate with steady expenses.",
    "insights": [
        {
            "id": "insight-1",
            "title": "Rent dominates",
            "description": "Rent is your largest expense.",
            "category": "spending",
            "severity": "info",
            "actionable": True,
        }
    ],
    "predictions": ["You will save more next month."],
}

MONTHLY_REPLY = {
    "month_summary": "A balanced month.",
    "insights": [],
    "comparisons": {
        "previous_month": "January 2025",
        "changes": [{"category": "Rent", "change": 10.0, "direction": "up"}],
    },
    "recommendations": ["Keep it up."],
}


class StubResponse:
    def __init__(self, text: str):
        self.text = text


class StubModel:
    """Stands in for a Gemini GenerativeModel; records every prompt."""

    def __init__(self, replies=None, error: Exception = None):
        self.replies = list(replies or [])
        self.error = error
        self.prompts: list[str] = []

    async def generate_content_async(self, prompt: str) -> StubResponse:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return StubResponse(reply if isinstance(reply, str) else json.dumps(reply))


class FakeClock:
    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def month_storage():
    return InMemoryMonthStorage()


@pytest.fixture
def template_storage():
    return InMemoryRecurringTemplateStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger_flow(month_storage, template_storage, audit_logger):
    return LedgerFlow(
        month_storage=month_storage,
        template_storage=template_storage,
        audit_logger=audit_logger,
    )


@pytest.fixture
def empty_month():
    """An unsaved January 2025 with nothing in it."""
    return build_month(USER, 2025, 0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_storage():
    return InMemoryInsightsCacheStorage()


@pytest.fixture
def stub_model():
    return StubModel(replies=[OVERVIEW_REPLY])


@pytest.fixture
def insights_service(stub_model, cache_storage, audit_logger, clock):
    return InsightsService(
        agent=InsightsAgent(model=stub_model),
        cache_storage=cache_storage,
        audit_logger=audit_logger,
        ttl_hours=24,
        clock=clock,
    )


@pytest.fixture
def insights_flow(month_storage, insights_service):
    return InsightsFlow(month_storage=month_storage, insights_service=insights_service)
