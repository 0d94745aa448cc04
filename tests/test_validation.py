"""
Tests for ledger input validation.
"""

import pytest
from decimal import Decimal

from finance_tracker.errors import ValidationError
from finance_tracker.models.ledger import ExpenseTag
from finance_tracker.validation import (
    validate_amount,
    validate_category_name,
    validate_identifier,
    validate_month_index,
    validate_note,
    validate_tag,
    validate_year,
)


class TestAmountValidation:
    """Amounts must be finite numbers strictly greater than zero."""

    @pytest.mark.parametrize("value, expected", [
        (100, Decimal("100")),
        ("12.50", Decimal("12.50")),
        (Decimal("0.01"), Decimal("0.01")),
        (2.5, Decimal("2.5")),
    ])
    def test_accepts_positive_numbers(self, value, expected):
        assert validate_amount(value) == expected

    @pytest.mark.parametrize("value", [0, -5, "0", "abc", "", None, True, "NaN", "Infinity"])
    def test_rejects_invalid_amounts(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(value)
        assert exc_info.value.field == "amount"

    def test_field_name_is_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(-1, field="template_amount")
        assert exc_info.value.field == "template_amount"


class TestTextValidation:

    def test_category_name_is_stripped(self):
        assert validate_category_name("  Rent  ") == "Rent"

    @pytest.mark.parametrize("value", ["", "   ", None, 42])
    def test_category_name_required(self, value):
        with pytest.raises(ValidationError):
            validate_category_name(value)

    def test_category_name_length(self):
        with pytest.raises(ValidationError):
            validate_category_name("x" * 101)

    def test_note_none_is_empty(self):
        assert validate_note(None) == ""

    def test_note_too_long(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_note("x" * 501)
        assert exc_info.value.field == "note"

    def test_identifier_required(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_identifier("  ", "entry_id")
        assert exc_info.value.field == "entry_id"


class TestTagValidation:

    def test_known_tags(self):
        assert validate_tag("need") == ExpenseTag.NEED
        assert validate_tag(ExpenseTag.WANT) == ExpenseTag.WANT

    def test_missing_tag_is_none(self):
        """None means 'not supplied', never silently neutral."""
        assert validate_tag(None) is None

    def test_unknown_tag_rejected(self):
        with pytest.raises(ValidationError, match="need, want, neutral"):
            validate_tag("luxury")


class TestCalendarValidation:

    @pytest.mark.parametrize("value", [0, 5, 11])
    def test_month_index_in_range(self, value):
        assert validate_month_index(value) == value

    @pytest.mark.parametrize("value", [-1, 12, "3", 3.0, True, None])
    def test_month_index_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_month_index(value)
        assert exc_info.value.field == "month"

    def test_year_rejected(self):
        with pytest.raises(ValidationError):
            validate_year(0)
        with pytest.raises(ValidationError):
            validate_year("2025")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
