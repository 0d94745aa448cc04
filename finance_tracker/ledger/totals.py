"""
Month Totals Recalculator

Totals are re-summed from scratch after every mutation rather than
updated incrementally. Months hold a handful of categories, and a full
re-scan cannot drift away from the entries it summarizes.
"""

from decimal import Decimal
from typing import Iterable

from finance_tracker.models.ledger import Month


def sum_amounts(items: Iterable) -> Decimal:
    """Sum the `amount` attribute of categories or entries."""
    return sum((item.amount for item in items), Decimal("0"))


def recalculate(month: Month) -> Month:
    """
    Restore the month's derived totals.

    Sets exactly three fields:
        total_income  = sum of income category amounts
        total_expense = sum of expense category amounts
        carry_forward = total_income - total_expense (may be negative)

    Pure arithmetic over in-memory data: it cannot fail and calling it
    twice in a row gives the same result. Returns the same month for chaining.
    """
    month.total_income = sum_amounts(month.income)
    month.total_expense = sum_amounts(month.expenses)
    month.carry_forward = month.total_income - month.total_expense
    return month
