"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of how a month reached its totals
2. Debugging capability when a write is rejected
3. User can see history of their changes

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finance_tracker.services.storage import AuditStorageInterface


def log_renderer(debug_mode: bool):
    """Console output while debugging, JSON lines otherwise."""
    if debug_mode:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        log_renderer(get_settings().app.debug_mode),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_month_created(
        self,
        month_id: str,
        month_name: str,
        carry_in: str,
        recurring_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log month creation."""
        await self.log(AuditEventBuilder.month_created(
            month_id=month_id,
            month_name=month_name,
            carry_in=carry_in,
            recurring_count=recurring_count,
            correlation_id=correlation_id,
        ))

    async def log_month_deleted(
        self,
        month_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.month_deleted(
            month_id=month_id,
            correlation_id=correlation_id,
        ))

    async def log_entry_changed(
        self,
        event_type: AuditEventType,
        month_id: str,
        side: str,
        entry_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an entry add / update / delete."""
        await self.log(AuditEventBuilder.entry_changed(
            event_type=event_type,
            month_id=month_id,
            side=side,
            entry_id=entry_id,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_category_changed(
        self,
        event_type: AuditEventType,
        month_id: str,
        side: str,
        category_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a whole-category add / update / delete."""
        await self.log(AuditEventBuilder.category_changed(
            event_type=event_type,
            month_id=month_id,
            side=side,
            category_id=category_id,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_recurring_template_changed(
        self,
        event_type: AuditEventType,
        template_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_template_changed(
            event_type=event_type,
            template_id=template_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        operation: str,
        field: Optional[str],
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log rejected input."""
        await self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            field=field,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_concurrent_modification(
        self,
        month_id: str,
        expected_version: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.concurrent_modification(
            month_id=month_id,
            expected_version=expected_version,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        operation: str,
        error_message: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure."""
        await self.log(AuditEventBuilder.save_failed(
            operation=operation,
            error_message=error_message,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_insights_served(
        self,
        user_id: str,
        insight_type: str,
        cache_hit: bool,
        month_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.insights_served(
            user_id=user_id,
            insight_type=insight_type,
            cache_hit=cache_hit,
            month_id=month_id,
        ))

    async def log_insights_cache_cleared(
        self,
        user_id: str,
        deleted: int,
        month_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.insights_cache_cleared(
            user_id=user_id,
            deleted=deleted,
            month_id=month_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding an entry).
    Pass it through all subsequent operations.
    """
    return uuid4()
