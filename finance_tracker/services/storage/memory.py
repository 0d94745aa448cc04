"""
In-Memory Storage Implementation

Used for tests and local runs without Google Sheets. Each store keeps
deep copies, so callers can never reach into stored state by mutating a
returned object. Month writes are compare-and-swap on `version` under an
asyncio lock.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.insights import InsightsCacheEntry
from finance_tracker.models.ledger import Month, RecurringExpenseTemplate
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    InsightsCacheStorageInterface,
    MonthStorageInterface,
    RecordNotFoundError,
    RecurringTemplateStorageInterface,
    StaleWriteError,
)


class InMemoryMonthStorage(MonthStorageInterface):
    """Month documents held in a dict keyed by month id."""

    def __init__(self):
        self._months: dict[str, Month] = {}
        self._lock = asyncio.Lock()

    async def find_month(self, user_id: str, year: int, month: int) -> Optional[Month]:
        for stored in self._months.values():
            if stored.user_id == user_id and stored.period == (year, month):
                return stored.model_copy(deep=True)
        return None

    async def find_month_by_id(self, month_id: str) -> Optional[Month]:
        stored = self._months.get(month_id)
        return stored.model_copy(deep=True) if stored else None

    async def list_months(self, user_id: str) -> list[Month]:
        months = [
            stored.model_copy(deep=True)
            for stored in self._months.values()
            if stored.user_id == user_id
        ]
        months.sort(key=lambda m: m.period)
        return months

    async def create_month(self, month: Month) -> Month:
        async with self._lock:
            for stored in self._months.values():
                if stored.user_id == month.user_id and stored.period == month.period:
                    raise DuplicateError(
                        f"Month already exists: {month.user_id} {month.year}-{month.month}"
                    )
            if month.id in self._months:
                raise DuplicateError(f"Month id already used: {month.id}")

            stored = month.model_copy(deep=True)
            stored.version = 1
            self._months[stored.id] = stored
            return stored.model_copy(deep=True)

    async def save_month(self, month: Month, expected_version: int) -> Month:
        async with self._lock:
            current = self._months.get(month.id)
            if current is None:
                raise RecordNotFoundError(f"Month not found: {month.id}")
            if current.version != expected_version:
                raise StaleWriteError(
                    f"Month {month.id} changed since it was read",
                    expected_version=expected_version,
                    actual_version=current.version,
                )

            stored = month.model_copy(deep=True)
            stored.version = expected_version + 1
            stored.updated_at = datetime.now(timezone.utc)
            self._months[stored.id] = stored
            return stored.model_copy(deep=True)

    async def delete_month(self, month_id: str) -> bool:
        async with self._lock:
            return self._months.pop(month_id, None) is not None


class InMemoryRecurringTemplateStorage(RecurringTemplateStorageInterface):

    def __init__(self):
        self._templates: dict[str, RecurringExpenseTemplate] = {}

    async def list_templates(self, user_id: str) -> list[RecurringExpenseTemplate]:
        return [
            template.model_copy(deep=True)
            for template in self._templates.values()
            if template.user_id == user_id
        ]

    async def get_template(self, template_id: str) -> Optional[RecurringExpenseTemplate]:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def save_template(self, template: RecurringExpenseTemplate) -> RecurringExpenseTemplate:
        self._templates[template.id] = template.model_copy(deep=True)
        return template.model_copy(deep=True)

    async def delete_template(self, template_id: str) -> bool:
        return self._templates.pop(template_id, None) is not None


class InMemoryInsightsCacheStorage(InsightsCacheStorageInterface):

    def __init__(self):
        self._entries: dict[tuple[str, str], InsightsCacheEntry] = {}

    async def get_entry(self, user_id: str, cache_key: str) -> Optional[InsightsCacheEntry]:
        entry = self._entries.get((user_id, cache_key))
        return entry.model_copy(deep=True) if entry else None

    async def upsert_entry(self, entry: InsightsCacheEntry) -> InsightsCacheEntry:
        self._entries[(entry.user_id, entry.cache_key)] = entry.model_copy(deep=True)
        return entry

    async def delete_entry(self, user_id: str, cache_key: str) -> bool:
        return self._entries.pop((user_id, cache_key), None) is not None

    async def delete_user_entries(self, user_id: str) -> int:
        keys = [key for key in self._entries if key[0] == user_id]
        for key in keys:
            del self._entries[key]
        return len(keys)


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
