"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    Category,
    DisplayCategory,
    Entry,
    ExpenseTag,
    ItemizedCategory,
    LedgerSide,
    LegacyCategory,
    Month,
    RecurringExpenseTemplate,
    new_id,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_tracker.models.insights import (
    CategoryChange,
    InsightItem,
    InsightsCacheEntry,
    InsightType,
    MonthComparison,
    MonthlyInsights,
    OverviewInsights,
)

__all__ = [
    # Ledger models
    "Category",
    "DisplayCategory",
    "Entry",
    "ExpenseTag",
    "ItemizedCategory",
    "LedgerSide",
    "LegacyCategory",
    "Month",
    "RecurringExpenseTemplate",
    "new_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Insights models
    "CategoryChange",
    "InsightItem",
    "InsightsCacheEntry",
    "InsightType",
    "MonthComparison",
    "MonthlyInsights",
    "OverviewInsights",
]
