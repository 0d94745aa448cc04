"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory stores back tests and
local runs. Both honour the same interface.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    InsightsCacheStorageInterface,
    MonthStorageInterface,
    RecordNotFoundError,
    RecurringTemplateStorageInterface,
    StaleWriteError,
    StorageError,
    StorageUnavailableError,
)
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsInsightsCacheStorage,
    GoogleSheetsMonthStorage,
    GoogleSheetsRecurringTemplateStorage,
)
from finance_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryInsightsCacheStorage,
    InMemoryMonthStorage,
    InMemoryRecurringTemplateStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "InsightsCacheStorageInterface",
    "MonthStorageInterface",
    "RecurringTemplateStorageInterface",
    # Exceptions
    "DuplicateError",
    "RecordNotFoundError",
    "StaleWriteError",
    "StorageError",
    "StorageUnavailableError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsInsightsCacheStorage",
    "GoogleSheetsMonthStorage",
    "GoogleSheetsRecurringTemplateStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryInsightsCacheStorage",
    "InMemoryMonthStorage",
    "InMemoryRecurringTemplateStorage",
]
