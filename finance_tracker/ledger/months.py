"""
Month Creation / Carry-Forward Propagation

Builds a brand-new Month entirely in memory:

1. Income is seeded with a "Carry Forward" category holding the previous
   calendar month's carry-forward, but only when that balance is positive.
   A negative balance is dropped rather than carried in as negative income.
2. Expenses are seeded with one itemized category per recurring template.
3. Totals come from `recalculate`, never computed by hand.

Nothing here talks to storage. The orchestrator looks up the previous
month and the templates, calls `build_month`, and only then persists, so a
failed lookup can never leave a half-built month behind.
"""

from decimal import Decimal
from typing import Iterable, Optional

from finance_tracker.ledger.entries import format_amount
from finance_tracker.ledger.totals import recalculate
from finance_tracker.models.ledger import (
    Entry,
    ItemizedCategory,
    LegacyCategory,
    Month,
    RecurringExpenseTemplate,
    new_id,
)
from finance_tracker.validation import (
    validate_identifier,
    validate_month_index,
    validate_year,
)


MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

CARRY_FORWARD_CATEGORY = "Carry Forward"


def month_display_name(year: int, month_index: int) -> str:
    """`month_display_name(2025, 1)` -> 'February 2025'."""
    return f"{MONTH_NAMES[month_index]} {year}"


def previous_period(year: int, month_index: int) -> tuple[int, int]:
    """The calendar month immediately before (year, month_index)."""
    if month_index == 0:
        return year - 1, 11
    return year, month_index - 1


def carry_in_from(previous: Optional[Month]) -> Decimal:
    if previous is None:
        return Decimal("0")
    return previous.carry_forward


def seed_income(carry_in: Decimal) -> list:
    if carry_in <= 0:
        return []
    return [
        LegacyCategory(
            id=new_id("inc"),
            category=CARRY_FORWARD_CATEGORY,
            amount=carry_in,
            comment="",
        )
    ]


def seed_expenses(templates: Iterable[RecurringExpenseTemplate]) -> list[ItemizedCategory]:
    seeded = []
    for template in templates:
        entry = Entry(amount=template.amount, note=template.note, tag=template.tag)
        seeded.append(
            ItemizedCategory(
                id=new_id("exp"),
                category=template.category,
                amount=template.amount,
                comment=f"{format_amount(template.amount)}({template.note})",
                entries=[entry],
            )
        )
    return seeded


def build_month(
    user_id: str,
    year: int,
    month_index: int,
    previous: Optional[Month] = None,
    templates: Iterable[RecurringExpenseTemplate] = (),
) -> Month:
    """
    Build a new, unsaved month seeded from carry-forward and recurring templates.

    Args:
        user_id: Owner of the new month
        year: Calendar year
        month_index: 0 (January) .. 11 (December)
        previous: The month for `previous_period(year, month_index)`, if any
        templates: The user's recurring expense templates

    Raises:
        ValidationError: invalid user id, year or month index
    """
    user_id = validate_identifier(user_id, "user_id")
    year = validate_year(year)
    month_index = validate_month_index(month_index)

    month = Month(
        user_id=user_id,
        month_name=month_display_name(year, month_index),
        year=year,
        month=month_index,
        income=seed_income(carry_in_from(previous)),
        expenses=seed_expenses(templates),
    )
    return recalculate(month)
