"""Input validation package."""

from finance_tracker.validation.validator import (
    validate_amount,
    validate_category_name,
    validate_identifier,
    validate_month_index,
    validate_note,
    validate_tag,
    validate_year,
)

__all__ = [
    "validate_amount",
    "validate_category_name",
    "validate_identifier",
    "validate_month_index",
    "validate_note",
    "validate_tag",
    "validate_year",
]
