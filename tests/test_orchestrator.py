"""
Integration tests for the ledger flow over in-memory storage.
"""

import pytest
from decimal import Decimal

from finance_tracker.errors import (
    ConcurrentModificationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from finance_tracker.ledger import build_month
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.ledger import (
    ExpenseTag,
    ItemizedCategory,
    LedgerSide,
    LegacyCategory,
)
from finance_tracker.orchestrator import (
    InsightsFlow,
    LedgerFlow,
    create_app_components,
)
from finance_tracker.services.storage import (
    InMemoryMonthStorage,
    InMemoryRecurringTemplateStorage,
    StorageUnavailableError,
)

USER = "user-1"


class LaggingMonthStorage(InMemoryMonthStorage):
    """Keeps serving a frozen copy of a month, like a reader that lost a race."""

    def __init__(self):
        super().__init__()
        self.frozen = None

    async def find_month_by_id(self, month_id):
        if self.frozen is not None:
            return self.frozen.model_copy(deep=True)
        return await super().find_month_by_id(month_id)


class FailingSaveStorage(InMemoryMonthStorage):
    async def save_month(self, month, expected_version):
        raise StorageUnavailableError("sheet quota exceeded")


class FailingTemplateStorage(InMemoryRecurringTemplateStorage):
    async def list_templates(self, user_id):
        raise StorageUnavailableError("connection reset")


async def event_types(audit_storage):
    return [e.event_type for e in await audit_storage.get_recent_events()]


class TestCreateMonth:

    async def test_creates_blank_month(self, ledger_flow, month_storage, audit_storage):
        month = await ledger_flow.create_month(USER, 2025, 0)

        assert month.month_name == "January 2025"
        assert month.version == 1
        assert await month_storage.find_month(USER, 2025, 0) == month
        assert AuditEventType.MONTH_CREATED in await event_types(audit_storage)

    async def test_duplicate_is_conflict(self, ledger_flow, month_storage):
        """The second create fails and leaves the first month intact."""
        first = await ledger_flow.create_month(USER, 2025, 5)
        await ledger_flow.add_income_entry(first.id, "Salary", 100)
        stored = await month_storage.find_month_by_id(first.id)

        with pytest.raises(ConflictError, match="Month already exists"):
            await ledger_flow.create_month(USER, 2025, 5)

        assert await month_storage.find_month_by_id(first.id) == stored
        assert len(await month_storage.list_months(USER)) == 1

    async def test_other_users_are_independent(self, ledger_flow):
        await ledger_flow.create_month(USER, 2025, 5)
        other = await ledger_flow.create_month("user-2", 2025, 5)
        assert other.user_id == "user-2"

    async def test_invalid_index_stores_nothing(self, ledger_flow, month_storage, audit_storage):
        with pytest.raises(ValidationError):
            await ledger_flow.create_month(USER, 2025, 12)

        assert await month_storage.list_months(USER) == []
        assert AuditEventType.VALIDATION_FAILED in await event_types(audit_storage)

    async def test_carry_forward_from_previous_month(self, ledger_flow):
        january = await ledger_flow.create_month(USER, 2025, 0)
        await ledger_flow.add_income_entry(january.id, "Salary", 5000)
        await ledger_flow.add_expense_entry(january.id, "Rent", 2000)

        february = await ledger_flow.create_month(USER, 2025, 1)

        assert [c.category for c in february.income] == ["Carry Forward"]
        assert february.total_income == Decimal("3000")
        assert february.total_expense == 0
        assert february.carry_forward == Decimal("3000")

    async def test_carry_forward_across_year_boundary(self, ledger_flow):
        december = await ledger_flow.create_month(USER, 2024, 11)
        await ledger_flow.add_income_entry(december.id, "Salary", 10)

        january = await ledger_flow.create_month(USER, 2025, 0)
        assert january.total_income == Decimal("10")

    async def test_gap_month_gets_no_carry_forward(self, ledger_flow):
        """Only the immediately preceding calendar month is consulted."""
        january = await ledger_flow.create_month(USER, 2025, 0)
        await ledger_flow.add_income_entry(january.id, "Salary", 10)

        march = await ledger_flow.create_month(USER, 2025, 2)
        assert march.income == []

    async def test_recurring_templates_seed_expenses(self, ledger_flow):
        await ledger_flow.add_recurring_template(USER, "Netflix", 200, "sub", "want")

        march = await ledger_flow.create_month(USER, 2025, 2)

        assert march.total_income == 0
        assert march.total_expense == Decimal("200")
        assert march.carry_forward == Decimal("-200")
        netflix = march.expenses[0]
        assert netflix.entries[0].tag == ExpenseTag.WANT

    async def test_lookup_failure_creates_nothing(self, month_storage, audit_logger):
        flow = LedgerFlow(month_storage, FailingTemplateStorage(), audit_logger)

        with pytest.raises(DependencyError):
            await flow.create_month(USER, 2025, 0)

        assert await month_storage.list_months(USER) == []


class TestReadAndDelete:

    async def test_get_missing_month(self, ledger_flow):
        with pytest.raises(NotFoundError):
            await ledger_flow.get_month("month_missing")

    async def test_get_foreign_month(self, ledger_flow):
        month = await ledger_flow.create_month(USER, 2025, 0)
        with pytest.raises(NotFoundError):
            await ledger_flow.get_month(month.id, user_id="someone-else")

    async def test_get_normalizes_legacy(self, ledger_flow, month_storage):
        month = build_month(USER, 2025, 0)
        month.income.append(
            LegacyCategory(id="inc_old", category="Salary", amount=Decimal("500"), comment="old")
        )
        stored = await month_storage.create_month(month)

        loaded = await ledger_flow.get_month(stored.id)

        assert isinstance(loaded.income[0], ItemizedCategory)
        assert loaded.income[0].entries[0].id == "inc_old"
        # Storage still holds the legacy shape until the next write
        raw = await month_storage.find_month_by_id(stored.id)
        assert isinstance(raw.income[0], LegacyCategory)

    async def test_list_months_newest_first(self, ledger_flow):
        await ledger_flow.create_month(USER, 2024, 11)
        await ledger_flow.create_month(USER, 2025, 1)
        await ledger_flow.create_month(USER, 2025, 0)

        months = await ledger_flow.list_months(USER)
        assert [m.period for m in months] == [(2025, 1), (2025, 0), (2024, 11)]

    async def test_delete_month(self, ledger_flow, audit_storage):
        month = await ledger_flow.create_month(USER, 2025, 0)

        await ledger_flow.delete_month(month.id, user_id=USER)

        with pytest.raises(NotFoundError):
            await ledger_flow.get_month(month.id)
        with pytest.raises(NotFoundError):
            await ledger_flow.delete_month(month.id)
        assert AuditEventType.MONTH_DELETED in await event_types(audit_storage)

    async def test_month_can_be_recreated_after_delete(self, ledger_flow):
        month = await ledger_flow.create_month(USER, 2025, 0)
        await ledger_flow.delete_month(month.id)

        again = await ledger_flow.create_month(USER, 2025, 0)
        assert again.id != month.id


class TestEntryFlow:

    @pytest.fixture
    async def month(self, ledger_flow):
        return await ledger_flow.create_month(USER, 2025, 0)

    async def test_add_merges_and_bumps_version(self, ledger_flow, month):
        await ledger_flow.add_expense_entry(month.id, "Rent", 500, "rent")
        saved = await ledger_flow.add_expense_entry(month.id, "Rent", 200)

        assert saved.version == 3
        assert len(saved.expenses) == 1
        assert saved.expenses[0].amount == Decimal("700")
        assert saved.expenses[0].comment == "500(rent)+200(No note)"
        assert saved.total_expense == Decimal("700")

    async def test_edit_keeps_tag_when_omitted(self, ledger_flow, month):
        saved = await ledger_flow.add_expense_entry(month.id, "Food", 50, "lunch", "need")
        entry_id = saved.expenses[0].entries[0].id

        edited = await ledger_flow.edit_expense_entry(month.id, entry_id, amount=100, note="x")

        entry = edited.expenses[0].entries[0]
        assert entry.tag == ExpenseTag.NEED
        assert entry.amount == Decimal("100")
        assert edited.total_expense == Decimal("100")

    async def test_delete_last_entry_removes_category(self, ledger_flow, month):
        saved = await ledger_flow.add_income_entry(month.id, "Salary", 100)
        entry_id = saved.income[0].entries[0].id

        after = await ledger_flow.delete_income_entry(month.id, entry_id)

        assert after.income == []
        assert after.total_income == 0

    async def test_missing_entry(self, ledger_flow, month, month_storage):
        with pytest.raises(NotFoundError):
            await ledger_flow.edit_income_entry(month.id, "entry_missing", 10)
        assert (await month_storage.find_month_by_id(month.id)).version == 1

    async def test_validation_failure_writes_nothing(self, ledger_flow, month, month_storage, audit_storage):
        with pytest.raises(ValidationError):
            await ledger_flow.add_expense_entry(month.id, "Rent", -5)

        stored = await month_storage.find_month_by_id(month.id)
        assert stored.version == 1
        assert stored.expenses == []
        assert AuditEventType.VALIDATION_FAILED in await event_types(audit_storage)

    async def test_legacy_category_merge(self, ledger_flow, month_storage):
        """A stored legacy 500 'rent' plus a 200 entry totals 700."""
        month = build_month(USER, 2025, 3)
        month.expenses.append(
            LegacyCategory(id="exp_old", category="Rent", amount=Decimal("500"), comment="rent")
        )
        stored = await month_storage.create_month(month)

        saved = await ledger_flow.add_expense_entry(stored.id, "Rent", 200, "extra")

        rent = saved.expenses[0]
        assert [e.amount for e in rent.entries] == [Decimal("500"), Decimal("200")]
        assert rent.amount == Decimal("700")
        assert saved.total_expense == Decimal("700")

    async def test_foreign_user_cannot_mutate(self, ledger_flow, month):
        with pytest.raises(NotFoundError):
            await ledger_flow.add_income_entry(month.id, "Salary", 1, user_id="intruder")

    async def test_entry_audit_trail(self, ledger_flow, month, audit_storage):
        saved = await ledger_flow.add_expense_entry(month.id, "Rent", 500)
        entry_id = saved.expenses[0].entries[0].id

        events = await audit_storage.get_events_by_entity("entry", entry_id)
        assert [e.event_type for e in events] == [AuditEventType.ENTRY_ADDED]
        assert events[0].details["month_id"] == month.id


class TestCategoryFlow:

    @pytest.fixture
    async def month(self, ledger_flow):
        return await ledger_flow.create_month(USER, 2025, 0)

    async def test_legacy_add_keeps_flat_shape(self, ledger_flow, month, month_storage):
        await ledger_flow.add_expense_category(month.id, "Rent", 100, "old style")
        saved = await ledger_flow.add_expense_category(month.id, "Rent", 50)

        assert len(saved.expenses) == 2
        stored = await month_storage.find_month_by_id(month.id)
        assert all(isinstance(c, LegacyCategory) for c in stored.expenses)
        assert stored.total_expense == Decimal("150")

    async def test_legacy_edit(self, ledger_flow, month):
        saved = await ledger_flow.add_income_category(month.id, "Salary", 100)
        category_id = saved.income[0].id

        edited = await ledger_flow.edit_income_category(month.id, category_id, "Wages", 300, "june")

        assert edited.income[0].category == "Wages"
        assert edited.total_income == Decimal("300")

    async def test_delete_category(self, ledger_flow, month):
        saved = await ledger_flow.add_expense_entry(month.id, "Rent", 100)
        after = await ledger_flow.delete_expense_category(month.id, saved.expenses[0].id)

        assert after.expenses == []
        with pytest.raises(NotFoundError):
            await ledger_flow.delete_expense_category(month.id, saved.expenses[0].id)

    async def test_display_categories(self, ledger_flow, month):
        await ledger_flow.add_expense_category(month.id, "Rent", 100, "flat")
        saved = await ledger_flow.add_expense_category(month.id, "Rent", 50)

        grouped = ledger_flow.display_categories(saved, LedgerSide.EXPENSE)

        assert len(grouped) == 1
        assert grouped[0].amount == Decimal("150")
        assert len(saved.expenses) == 2


class TestConcurrency:

    async def test_stale_write_is_rejected(self, template_storage, audit_logger, audit_storage):
        storage = LaggingMonthStorage()
        flow = LedgerFlow(storage, template_storage, audit_logger)
        month = await flow.create_month(USER, 2025, 0)
        storage.frozen = month

        await flow.add_expense_entry(month.id, "Rent", 100)
        with pytest.raises(ConcurrentModificationError):
            await flow.add_expense_entry(month.id, "Food", 50)

        storage.frozen = None
        stored = await storage.find_month_by_id(month.id)
        assert [c.category for c in stored.expenses] == ["Rent"]
        assert stored.version == 2
        assert AuditEventType.CONCURRENT_MODIFICATION in await event_types(audit_storage)

    async def test_concurrent_modification_is_a_conflict(self):
        assert issubclass(ConcurrentModificationError, ConflictError)


class TestDependencyFailures:

    async def test_save_failure(self, template_storage, audit_logger, audit_storage):
        storage = FailingSaveStorage()
        flow = LedgerFlow(storage, template_storage, audit_logger)
        month = await flow.create_month(USER, 2025, 0)

        with pytest.raises(DependencyError):
            await flow.add_income_entry(month.id, "Salary", 100)

        stored = await storage.find_month_by_id(month.id)
        assert stored.income == []
        assert AuditEventType.SAVE_FAILED in await event_types(audit_storage)


class TestRecurringTemplates:

    async def test_crud(self, ledger_flow):
        template = await ledger_flow.add_recurring_template(USER, "Gym", "45.50")
        assert template.tag == ExpenseTag.NEUTRAL

        assert [t.id for t in await ledger_flow.list_recurring_templates(USER)] == [template.id]

        await ledger_flow.delete_recurring_template(USER, template.id)
        assert await ledger_flow.list_recurring_templates(USER) == []

    async def test_rejects_invalid_amount(self, ledger_flow):
        with pytest.raises(ValidationError):
            await ledger_flow.add_recurring_template(USER, "Gym", 0)

    async def test_delete_foreign_template(self, ledger_flow):
        template = await ledger_flow.add_recurring_template(USER, "Gym", 10)
        with pytest.raises(NotFoundError):
            await ledger_flow.delete_recurring_template("user-2", template.id)

    async def test_existing_months_unaffected(self, ledger_flow, month_storage):
        month = await ledger_flow.create_month(USER, 2025, 0)
        await ledger_flow.add_recurring_template(USER, "Gym", 10)

        stored = await month_storage.find_month_by_id(month.id)
        assert stored.expenses == []

    async def test_update_applies_to_later_months_only(self, ledger_flow, audit_storage):
        template = await ledger_flow.add_recurring_template(USER, "Gym", 40, "monthly", "need")
        january = await ledger_flow.create_month(USER, 2025, 0)

        updated = await ledger_flow.update_recurring_template(USER, template.id, "Gym", 55, "new rate")
        february = await ledger_flow.create_month(USER, 2025, 1)

        assert updated.id == template.id
        assert updated.tag == ExpenseTag.NEED
        assert len(await ledger_flow.list_recurring_templates(USER)) == 1
        assert (await ledger_flow.get_month(january.id)).total_expense == Decimal("40")
        gym = february.expenses[0]
        assert gym.amount == Decimal("55")
        assert gym.entries[0].note == "new rate"

        events = await audit_storage.get_events_by_entity("recurring_template", template.id)
        assert [e.event_type for e in events] == [AuditEventType.RECURRING_TEMPLATE_SAVED] * 2

    async def test_update_can_change_tag(self, ledger_flow):
        template = await ledger_flow.add_recurring_template(USER, "Netflix", 200)
        updated = await ledger_flow.update_recurring_template(USER, template.id, "Netflix", 200, tag="want")
        assert updated.tag == ExpenseTag.WANT

    async def test_update_foreign_or_missing_template(self, ledger_flow):
        template = await ledger_flow.add_recurring_template(USER, "Gym", 10)

        with pytest.raises(NotFoundError):
            await ledger_flow.update_recurring_template("user-2", template.id, "Gym", 99)
        with pytest.raises(NotFoundError):
            await ledger_flow.update_recurring_template(USER, "rec_missing", "Gym", 99)

        stored = await ledger_flow.list_recurring_templates(USER)
        assert stored[0].amount == Decimal("10")

    async def test_update_rejects_invalid_amount(self, ledger_flow):
        template = await ledger_flow.add_recurring_template(USER, "Gym", 10)
        with pytest.raises(ValidationError):
            await ledger_flow.update_recurring_template(USER, template.id, "Gym", -1)

    async def test_padded_user_id_matches_owner(self, ledger_flow):
        template = await ledger_flow.add_recurring_template(USER, "Gym", 10)
        await ledger_flow.delete_recurring_template(f"  {USER} ", template.id)
        assert await ledger_flow.list_recurring_templates(USER) == []


class TestUserIdNormalization:
    """Surrounding whitespace in a user id never splits one user's data."""

    async def test_carry_forward_with_padded_user_id(self, ledger_flow):
        january = await ledger_flow.create_month("u", 2025, 0)
        await ledger_flow.add_income_entry(january.id, "Salary", 5000)

        february = await ledger_flow.create_month(" u ", 2025, 1)

        assert february.user_id == "u"
        assert february.total_income == Decimal("5000")

    async def test_padded_duplicate_is_conflict(self, ledger_flow):
        await ledger_flow.create_month("u", 2025, 0)
        with pytest.raises(ConflictError):
            await ledger_flow.create_month("u ", 2025, 0)

    async def test_recurring_templates_with_padded_user_id(self, ledger_flow):
        await ledger_flow.add_recurring_template("u", "Netflix", 200)

        month = await ledger_flow.create_month("  u", 2025, 0)
        assert month.total_expense == Decimal("200")

    async def test_get_month_with_padded_owner(self, ledger_flow):
        month = await ledger_flow.create_month("u", 2025, 0)
        loaded = await ledger_flow.get_month(month.id, user_id=" u ")
        assert loaded.id == month.id


class TestAppComponents:

    def test_in_memory_components(self):
        ledger_flow, insights_flow, sheets_client = create_app_components(use_storage=False)

        assert isinstance(ledger_flow, LedgerFlow)
        assert isinstance(insights_flow, InsightsFlow)
        assert sheets_client is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
