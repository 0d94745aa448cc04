"""
Ledger Input Validation

Every value that enters the ledger from a caller passes through here
before any month is touched. The UI validates too, but this layer is the
one that must hold: a rejected request never leaves a partial mutation.

IMPORTANT: Validation NEVER silently fixes issues.
A non-positive amount is rejected, not clamped; an unknown tag is
rejected, not mapped to `neutral`.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from finance_tracker.errors import ValidationError
from finance_tracker.models.ledger import ExpenseTag


MAX_CATEGORY_NAME_LENGTH = 100
MAX_NOTE_LENGTH = 500


def validate_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Parse and check an entry amount.

    Accepts int, float, Decimal or numeric strings. The result must be
    a finite number strictly greater than zero.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required and must be a number", field=field)

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)

    return amount


def validate_category_name(name: Any, field: str = "category") -> str:
    """Category names are free text but must be non-empty after stripping."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{field} is required", field=field)

    name = name.strip()
    if len(name) > MAX_CATEGORY_NAME_LENGTH:
        raise ValidationError(
            f"{field} must be at most {MAX_CATEGORY_NAME_LENGTH} characters",
            field=field,
        )
    return name


def validate_note(note: Any, field: str = "note") -> str:
    if note is None:
        return ""
    if not isinstance(note, str):
        raise ValidationError(f"{field} must be text", field=field)

    note = note.strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(
            f"{field} must be at most {MAX_NOTE_LENGTH} characters",
            field=field,
        )
    return note


def validate_tag(tag: Any) -> Optional[ExpenseTag]:
    """None means 'not supplied'; anything else must be need/want/neutral."""
    if tag is None:
        return None
    try:
        return ExpenseTag(tag)
    except ValueError:
        allowed = ", ".join(t.value for t in ExpenseTag)
        raise ValidationError(f"tag must be one of: {allowed}", field="tag")


def validate_month_index(month_index: Any) -> int:
    if isinstance(month_index, bool) or not isinstance(month_index, int):
        raise ValidationError("month must be an integer between 0 and 11", field="month")
    if not 0 <= month_index <= 11:
        raise ValidationError(
            f"month must be between 0 and 11, got {month_index}",
            field="month",
        )
    return month_index


def validate_year(year: Any) -> int:
    if isinstance(year, bool) or not isinstance(year, int):
        raise ValidationError("year must be an integer", field="year")
    if not 1 <= year <= 9999:
        raise ValidationError(f"year out of range: {year}", field="year")
    return year


def validate_identifier(value: Any, field: str) -> str:
    """Ids (user, month, entry, category) are opaque non-empty strings."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()
