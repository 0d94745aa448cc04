"""
Audit Models for Finance Tracker

Every ledger mutation and every insights cache decision is recorded as an
audit event. This provides:
1. Traceability of how a month reached its current totals
2. Debugging information when a write is rejected or fails
3. A history the user can review

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Month lifecycle
    MONTH_CREATED = "month_created"
    MONTH_DELETED = "month_deleted"

    # Itemized entries
    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"

    # Whole categories (legacy path and deletes)
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Recurring templates
    RECURRING_TEMPLATE_SAVED = "recurring_template_saved"
    RECURRING_TEMPLATE_DELETED = "recurring_template_deleted"

    # Rejected or failed mutations
    VALIDATION_FAILED = "validation_failed"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    SAVE_FAILED = "save_failed"

    # Insights
    INSIGHTS_CACHE_HIT = "insights_cache_hit"
    INSIGHTS_GENERATED = "insights_generated"
    INSIGHTS_CACHE_CLEARED = "insights_cache_cleared"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'month', 'entry', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one API request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.month_created(month_id, "March 2025", ...)
        event = AuditEventBuilder.entry_added(month_id, "expense", entry_id, ...)
    """

    @staticmethod
    def month_created(
        month_id: str,
        month_name: str,
        carry_in: str,
        recurring_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_CREATED,
            entity_type="month",
            entity_id=month_id,
            correlation_id=correlation_id,
            description=f"Month created: {month_name}",
            details={
                "carry_in": carry_in,
                "recurring_applied": recurring_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def month_deleted(
        month_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTH_DELETED,
            entity_type="month",
            entity_id=month_id,
            correlation_id=correlation_id,
            description="Month deleted with all its categories",
            is_user_action=True,
        )

    @staticmethod
    def entry_changed(
        event_type: AuditEventType,
        month_id: str,
        side: str,
        entry_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_")[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"{side.capitalize()} entry {verb}",
            details={"month_id": month_id, "side": side, **(details or {})},
            is_user_action=True,
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        month_id: str,
        side: str,
        category_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_")[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"{side.capitalize()} category {verb}",
            details={"month_id": month_id, "side": side, **(details or {})},
            is_user_action=True,
        )

    @staticmethod
    def recurring_template_changed(
        event_type: AuditEventType,
        template_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="recurring_template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Recurring template {event_type.value.split('_')[-1]}",
            details={"user_id": user_id},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        operation: str,
        field: Optional[str],
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Rejected {operation}: invalid input",
            error_message=message,
            details={"operation": operation, "field": field},
        )

    @staticmethod
    def concurrent_modification(
        month_id: str,
        expected_version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENT_MODIFICATION,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_id=month_id,
            correlation_id=correlation_id,
            description="Write rejected: month changed since it was read",
            details={"expected_version": expected_version},
        )

    @staticmethod
    def save_failed(
        operation: str,
        error_message: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="month",
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Storage failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def insights_served(
        user_id: str,
        insight_type: str,
        cache_hit: bool,
        month_id: Optional[str] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.INSIGHTS_CACHE_HIT
            if cache_hit
            else AuditEventType.INSIGHTS_GENERATED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="insights",
            entity_id=month_id,
            description=(
                f"{insight_type.capitalize()} insights "
                f"{'served from cache' if cache_hit else 'generated'}"
            ),
            details={"user_id": user_id, "insight_type": insight_type},
        )

    @staticmethod
    def insights_cache_cleared(
        user_id: str,
        deleted: int,
        month_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_CACHE_CLEARED,
            entity_type="insights",
            entity_id=month_id,
            description=f"Cleared {deleted} cached insights",
            details={"user_id": user_id, "deleted": deleted},
        )
