"""
Tests for the month totals recalculator.
"""

import pytest
from decimal import Decimal

from finance_tracker.ledger import add_entry, recalculate
from finance_tracker.models.ledger import LedgerSide, LegacyCategory


class TestRecalculate:

    def test_empty_month_is_zero(self, empty_month):
        recalculate(empty_month)
        assert empty_month.total_income == 0
        assert empty_month.total_expense == 0
        assert empty_month.carry_forward == 0

    def test_sums_both_sides(self, empty_month):
        add_entry(empty_month, LedgerSide.INCOME, "Salary", "5000")
        add_entry(empty_month, LedgerSide.EXPENSE, "Rent", "1500")
        add_entry(empty_month, LedgerSide.EXPENSE, "Food", "500.50")

        assert empty_month.total_income == Decimal("5000")
        assert empty_month.total_expense == Decimal("2000.50")
        assert empty_month.carry_forward == Decimal("2999.50")

    def test_negative_carry_forward_is_valid(self, empty_month):
        add_entry(empty_month, LedgerSide.EXPENSE, "Rent", 800)
        assert empty_month.carry_forward == Decimal("-800")

    def test_counts_legacy_categories(self, empty_month):
        empty_month.income.append(
            LegacyCategory(id="inc_old", category="Salary", amount=Decimal("700"), comment="old")
        )
        recalculate(empty_month)
        assert empty_month.total_income == Decimal("700")

    def test_idempotent(self, empty_month):
        """Running twice in a row gives identical totals."""
        add_entry(empty_month, LedgerSide.INCOME, "Salary", 100)
        add_entry(empty_month, LedgerSide.EXPENSE, "Rent", 40)

        first = recalculate(empty_month).model_dump()
        second = recalculate(empty_month).model_dump()
        assert first == second

    def test_only_totals_change(self, empty_month):
        """Recalculation touches nothing but the three derived fields."""
        add_entry(empty_month, LedgerSide.EXPENSE, "Rent", 40)
        empty_month.total_expense = Decimal("999")

        before = empty_month.model_dump(exclude={"total_income", "total_expense", "carry_forward"})
        recalculate(empty_month)
        after = empty_month.model_dump(exclude={"total_income", "total_expense", "carry_forward"})

        assert before == after
        assert empty_month.total_expense == Decimal("40")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
