"""
Month ledger aggregation engine.

Entry store mutations, the totals recalculator and month creation.
"""

from finance_tracker.ledger.entries import (
    add_category,
    add_entry,
    breakdown,
    category_key,
    delete_category,
    delete_entry,
    edit_category,
    edit_entry,
    format_amount,
    group_for_display,
    normalize_month,
)
from finance_tracker.ledger.months import (
    CARRY_FORWARD_CATEGORY,
    MONTH_NAMES,
    build_month,
    month_display_name,
    previous_period,
)
from finance_tracker.ledger.totals import recalculate

__all__ = [
    "CARRY_FORWARD_CATEGORY",
    "MONTH_NAMES",
    "add_category",
    "add_entry",
    "breakdown",
    "build_month",
    "category_key",
    "delete_category",
    "delete_entry",
    "edit_category",
    "edit_entry",
    "format_amount",
    "group_for_display",
    "month_display_name",
    "normalize_month",
    "previous_period",
    "recalculate",
]
