"""
Tests for the Google Sheets backends against an in-process fake worksheet.

The fake keeps every cell as a string, the way the Sheets API returns
RAW values, so these tests cover the row <-> model conversions.
"""

import pytest
from decimal import Decimal

from finance_tracker.ledger import add_entry, build_month
from finance_tracker.models.audit import AuditEventBuilder, AuditEventType
from finance_tracker.models.insights import InsightsCacheEntry, InsightType
from finance_tracker.models.ledger import (
    ExpenseTag,
    ItemizedCategory,
    LedgerSide,
    LegacyCategory,
    RecurringExpenseTemplate,
)
from finance_tracker.orchestrator import LedgerFlow
from finance_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsInsightsCacheStorage,
    GoogleSheetsMonthStorage,
    GoogleSheetsRecurringTemplateStorage,
    RecordNotFoundError,
    StaleWriteError,
)
from finance_tracker.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    INSIGHTS_COLUMNS,
    MONTH_COLUMNS,
    RECURRING_COLUMNS,
)


USER = "user-1"


class FakeCell:
    def __init__(self, value):
        self.value = value


class FakeWorksheet:
    def __init__(self, columns):
        self.rows = [list(columns)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(value) for value in row])

    def cell(self, row, col):
        return FakeCell(self.rows[row - 1][col - 1])

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    """Same surface as GoogleSheetsClient, backed by FakeWorksheets."""

    def __init__(self):
        self.months = FakeWorksheet(MONTH_COLUMNS)
        self.recurring = FakeWorksheet(RECURRING_COLUMNS)
        self.insights = FakeWorksheet(INSIGHTS_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_months_sheet(self):
        return self.months

    def get_recurring_sheet(self):
        return self.recurring

    def get_insights_sheet(self):
        return self.insights

    def get_audit_sheet(self):
        return self.audit

    def append_row(self, sheet, row):
        sheet.append_row(row)

    def write_row(self, sheet, row_number, row):
        sheet.rows[row_number - 1] = [str(value) for value in row]


@pytest.fixture
def sheets():
    return FakeSheetsClient()


@pytest.fixture
def month_store(sheets):
    return GoogleSheetsMonthStorage(sheets)


def month_with_data(month_index=0):
    month = build_month(USER, 2025, month_index)
    month.income.append(
        LegacyCategory(id="inc_old", category="Salary", amount=Decimal("500"), comment="june")
    )
    add_entry(month, LedgerSide.EXPENSE, "Rent", "1200.50", "flat", "need")
    return month


class TestMonthRows:

    async def test_create_and_read_back(self, month_store, sheets):
        created = await month_store.create_month(month_with_data())

        loaded = await month_store.find_month(USER, 2025, 0)

        assert len(sheets.months.rows) == 2
        assert loaded.version == 1
        assert isinstance(loaded.income[0], LegacyCategory)
        assert isinstance(loaded.expenses[0], ItemizedCategory)
        assert loaded.expenses[0].entries[0].tag == ExpenseTag.NEED
        assert loaded.expenses[0].amount == Decimal("1200.50")
        assert loaded.total_expense == created.total_expense
        assert loaded.created_at == created.created_at

    async def test_duplicate_period(self, month_store):
        await month_store.create_month(build_month(USER, 2025, 0))
        with pytest.raises(DuplicateError):
            await month_store.create_month(build_month(USER, 2025, 0))

    async def test_save_checks_version(self, month_store, sheets):
        created = await month_store.create_month(build_month(USER, 2025, 0))
        add_entry(created, LedgerSide.INCOME, "Salary", 100)

        saved = await month_store.save_month(created, expected_version=1)
        assert saved.version == 2

        before = [list(row) for row in sheets.months.rows]
        with pytest.raises(StaleWriteError) as excinfo:
            await month_store.save_month(created, expected_version=1)
        assert excinfo.value.actual_version == 2
        assert sheets.months.rows == before

    async def test_save_missing_month(self, month_store):
        with pytest.raises(RecordNotFoundError):
            await month_store.save_month(build_month(USER, 2025, 0), expected_version=0)

    async def test_list_skips_malformed_rows(self, month_store, sheets):
        await month_store.create_month(build_month(USER, 2025, 3))
        await month_store.create_month(build_month(USER, 2025, 1))
        sheets.months.rows.append(["month_bad", USER, "Broken", "x", "y"])

        months = await month_store.list_months(USER)
        assert [m.month for m in months] == [1, 3]

    async def test_delete(self, month_store):
        created = await month_store.create_month(build_month(USER, 2025, 0))

        assert await month_store.delete_month(created.id)
        assert not await month_store.delete_month(created.id)
        assert await month_store.find_month_by_id(created.id) is None


class TestOtherSheets:

    async def test_recurring_templates(self, sheets):
        store = GoogleSheetsRecurringTemplateStorage(sheets)
        template = RecurringExpenseTemplate(
            user_id=USER, category="Netflix", amount=Decimal("200"), tag=ExpenseTag.WANT
        )

        await store.save_template(template)
        await store.save_template(template)

        templates = await store.list_templates(USER)
        assert len(templates) == 1
        assert templates[0].tag == ExpenseTag.WANT
        assert await store.delete_template(template.id)
        assert await store.get_template(template.id) is None

    async def test_insights_cache_upsert(self, sheets):
        store = GoogleSheetsInsightsCacheStorage(sheets)
        entry = InsightsCacheEntry(
            user_id=USER,
            cache_key=f"overview-{USER}",
            insight_type=InsightType.OVERVIEW,
            insights={"summary": "first"},
            data_snapshot="abc",
            expires_at="2030-01-01T00:00:00+00:00",
        )

        await store.upsert_entry(entry)
        await store.upsert_entry(entry.model_copy(update={"insights": {"summary": "second"}}))

        loaded = await store.get_entry(USER, f"overview-{USER}")
        assert loaded.insights == {"summary": "second"}
        assert len(sheets.insights.rows) == 2
        assert await store.delete_user_entries(USER) == 1

    async def test_audit_round_trip(self, sheets):
        store = GoogleSheetsAuditStorage(sheets)
        event = AuditEventBuilder.month_created(
            month_id="month_1", month_name="January 2025", carry_in="0", recurring_count=0
        )

        assert await store.append_event(event)

        events = await store.get_events_by_entity("month", "month_1")
        assert events[0].event_id == event.event_id
        assert events[0].event_type == AuditEventType.MONTH_CREATED
        assert events[0].is_user_action == event.is_user_action


class TestFlowOverSheets:

    async def test_entry_mutations_persist(self, sheets):
        flow = LedgerFlow(
            GoogleSheetsMonthStorage(sheets),
            GoogleSheetsRecurringTemplateStorage(sheets),
        )
        month = await flow.create_month(USER, 2025, 0)
        await flow.add_expense_entry(month.id, "Rent", 500, "rent")
        await flow.add_expense_entry(month.id, "Rent", 200)

        loaded = await flow.get_month(month.id)

        assert loaded.version == 3
        assert loaded.expenses[0].comment == "500(rent)+200(No note)"
        assert loaded.carry_forward == Decimal("-700")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
