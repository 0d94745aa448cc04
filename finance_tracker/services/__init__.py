"""Services package."""

from finance_tracker.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsInsightsCacheStorage,
    GoogleSheetsMonthStorage,
    GoogleSheetsRecurringTemplateStorage,
    InMemoryAuditStorage,
    InMemoryInsightsCacheStorage,
    InMemoryMonthStorage,
    InMemoryRecurringTemplateStorage,
    InsightsCacheStorageInterface,
    MonthStorageInterface,
    RecordNotFoundError,
    RecurringTemplateStorageInterface,
    StaleWriteError,
    StorageError,
    StorageUnavailableError,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsInsightsCacheStorage",
    "GoogleSheetsMonthStorage",
    "GoogleSheetsRecurringTemplateStorage",
    "InMemoryAuditStorage",
    "InMemoryInsightsCacheStorage",
    "InMemoryMonthStorage",
    "InMemoryRecurringTemplateStorage",
    "InsightsCacheStorageInterface",
    "MonthStorageInterface",
    "RecordNotFoundError",
    "RecurringTemplateStorageInterface",
    "StaleWriteError",
    "StorageError",
    "StorageUnavailableError",
]
