"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

A Month is stored as one whole document. Writes are guarded by the
month's `version`: `save_month` only succeeds if the stored version still
equals the version the caller read, so two concurrent read-modify-write
cycles can never silently overwrite each other.

Implementations must return copies: mutating a returned month must not
change what is stored until `save_month` succeeds.
"""

from abc import ABC, abstractmethod
from typing import Optional

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.insights import InsightsCacheEntry
from finance_tracker.models.ledger import Month, RecurringExpenseTemplate


class MonthStorageInterface(ABC):
    """
    Abstract interface for month document storage.

    (user_id, year, month) is unique across stored months.
    """

    @abstractmethod
    async def find_month(
        self,
        user_id: str,
        year: int,
        month: int,
    ) -> Optional[Month]:
        """
        Find a user's month by calendar period.

        Returns:
            The month if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_month_by_id(self, month_id: str) -> Optional[Month]:
        """
        Retrieve a month by its ID.

        Returns:
            The month if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_months(self, user_id: str) -> list[Month]:
        """
        List all months of a user.

        Returns:
            Months sorted chronologically (oldest first)
        """
        pass

    @abstractmethod
    async def create_month(self, month: Month) -> Month:
        """
        Insert a new month.

        Returns:
            The stored month (version 1)

        Raises:
            DuplicateError: a month already exists for (user, year, month)
            StorageError: if the write fails
        """
        pass

    @abstractmethod
    async def save_month(self, month: Month, expected_version: int) -> Month:
        """
        Replace an existing month document.

        Args:
            month: The full month document to store
            expected_version: The version the caller read

        Returns:
            The stored month with its version incremented

        Raises:
            RecordNotFoundError: the month no longer exists
            StaleWriteError: the stored version differs from expected_version
            StorageError: if the write fails
        """
        pass

    @abstractmethod
    async def delete_month(self, month_id: str) -> bool:
        """
        Delete a month and everything it owns.

        Returns:
            True if a month was deleted, False if it did not exist
        """
        pass


class RecurringTemplateStorageInterface(ABC):
    """Abstract interface for recurring expense templates."""

    @abstractmethod
    async def list_templates(self, user_id: str) -> list[RecurringExpenseTemplate]:
        """
        List a user's templates in creation order.
        """
        pass

    @abstractmethod
    async def get_template(self, template_id: str) -> Optional[RecurringExpenseTemplate]:
        pass

    @abstractmethod
    async def save_template(self, template: RecurringExpenseTemplate) -> RecurringExpenseTemplate:
        """
        Insert or replace a template by id.
        """
        pass

    @abstractmethod
    async def delete_template(self, template_id: str) -> bool:
        """
        Returns:
            True if deleted, False if it did not exist
        """
        pass


class InsightsCacheStorageInterface(ABC):
    """
    Abstract interface for cached insights.

    Expiry is enforced by the insights service; backends may also purge
    expired entries on their own.
    """

    @abstractmethod
    async def get_entry(self, user_id: str, cache_key: str) -> Optional[InsightsCacheEntry]:
        pass

    @abstractmethod
    async def upsert_entry(self, entry: InsightsCacheEntry) -> InsightsCacheEntry:
        """
        Insert or replace the entry for (user_id, cache_key).
        """
        pass

    @abstractmethod
    async def delete_entry(self, user_id: str, cache_key: str) -> bool:
        pass

    @abstractmethod
    async def delete_user_entries(self, user_id: str) -> int:
        """
        Returns:
            Number of entries deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailableError(StorageError):
    """Could not connect to storage backend."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StaleWriteError(StorageError):
    """The stored document changed since it was read."""

    def __init__(self, message: str, expected_version: int, actual_version: int):
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version
