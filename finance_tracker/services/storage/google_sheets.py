"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each month is one row; its income and expense categories are stored as
JSON columns so the whole document is written in a single range update.

TRADEOFFS:
- No transactions and no compare-and-swap. `save_month` re-reads the
  version cell immediately before writing, which narrows but cannot fully
  close the race window between two writers.
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so the backend can be
swapped without changing ledger logic.
"""

import json
from datetime import datetime, timezone
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_tracker.models.insights import InsightsCacheEntry, InsightType
from finance_tracker.models.ledger import Month, RecurringExpenseTemplate
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    InsightsCacheStorageInterface,
    MonthStorageInterface,
    RecordNotFoundError,
    RecurringTemplateStorageInterface,
    StaleWriteError,
    StorageError,
    StorageUnavailableError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Months sheet
MONTH_COLUMNS = [
    "id",
    "user_id",
    "month_name",
    "year",
    "month",
    "income_json",
    "expenses_json",
    "total_income",
    "total_expense",
    "carry_forward",
    "version",
    "created_at",
    "updated_at",
]
VERSION_COLUMN = MONTH_COLUMNS.index("version")

# Column mappings for RecurringExpenses sheet
RECURRING_COLUMNS = [
    "id",
    "user_id",
    "category",
    "amount",
    "note",
    "tag",
    "created_at",
]

# Column mappings for InsightsCache sheet
INSIGHTS_COLUMNS = [
    "user_id",
    "cache_key",
    "insight_type",
    "month_id",
    "insights_json",
    "data_snapshot",
    "generated_at",
    "expires_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle missing trailing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _row_range(row_number: int, width: int) -> str:
    return f"A{row_number}:{rowcol_to_a1(row_number, width)}"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, sheet bootstrap and retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_months_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.months_sheet_name, MONTH_COLUMNS, rows=1000
        )

    def get_recurring_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.recurring_sheet_name, RECURRING_COLUMNS, rows=200
        )

    def get_insights_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.insights_sheet_name, INSIGHTS_COLUMNS, rows=500
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    @_sheets_retry
    def append_row(self, sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")

    @_sheets_retry
    def write_row(self, sheet: gspread.Worksheet, row_number: int, row: list) -> None:
        sheet.update(
            range_name=_row_range(row_number, len(row)),
            values=[row],
            value_input_option="RAW",
        )


class GoogleSheetsMonthStorage(MonthStorageInterface):
    """
    Google Sheets implementation of month storage.

    One month per row; categories are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _month_to_row(self, month: Month) -> list:
        """Convert a Month to a spreadsheet row."""
        return [
            month.id,
            month.user_id,
            month.month_name,
            str(month.year),
            str(month.month),
            json.dumps([c.model_dump(mode="json") for c in month.income]),
            json.dumps([c.model_dump(mode="json") for c in month.expenses]),
            str(month.total_income),
            str(month.total_expense),
            str(month.carry_forward),
            str(month.version),
            month.created_at.isoformat(),
            month.updated_at.isoformat(),
        ]

    def _row_to_month(self, row: list) -> Month:
        """Convert a spreadsheet row to a Month."""
        return Month(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1),
            month_name=_safe_get(row, 2),
            year=int(_safe_get(row, 3)),
            month=int(_safe_get(row, 4)),
            income=json.loads(_safe_get(row, 5, "[]")),
            expenses=json.loads(_safe_get(row, 6, "[]")),
            total_income=_safe_get(row, 7, "0"),
            total_expense=_safe_get(row, 8, "0"),
            carry_forward=_safe_get(row, 9, "0"),
            version=int(_safe_get(row, 10, "0")),
            created_at=datetime.fromisoformat(_safe_get(row, 11)),
            updated_at=datetime.fromisoformat(_safe_get(row, 12)),
        )

    def _rows(self) -> tuple[gspread.Worksheet, list[list]]:
        sheet = self._client.get_months_sheet()
        return sheet, sheet.get_all_values()

    def _locate(self, all_rows: list[list], month_id: str) -> Optional[int]:
        """1-based sheet row number of a month (row 1 is the header)."""
        for row_number, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == month_id:
                return row_number
        return None

    async def find_month(self, user_id: str, year: int, month: int) -> Optional[Month]:
        try:
            _, all_rows = self._rows()
            for row in all_rows[1:]:
                if (
                    row
                    and _safe_get(row, 1) == user_id
                    and _safe_get(row, 3) == str(year)
                    and _safe_get(row, 4) == str(month)
                ):
                    return self._row_to_month(row)
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to find month: {e}")

    async def find_month_by_id(self, month_id: str) -> Optional[Month]:
        try:
            _, all_rows = self._rows()
            row_number = self._locate(all_rows, month_id)
            if row_number is None:
                return None
            return self._row_to_month(all_rows[row_number - 1])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get month: {e}")

    async def list_months(self, user_id: str) -> list[Month]:
        try:
            _, all_rows = self._rows()
            months = []
            for row in all_rows[1:]:
                if not row or _safe_get(row, 1) != user_id:
                    continue
                try:
                    months.append(self._row_to_month(row))
                except Exception as e:
                    logger.warning("skipping_malformed_month_row", month_id=row[0], error=str(e))
            months.sort(key=lambda m: m.period)
            return months
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list months: {e}")

    async def create_month(self, month: Month) -> Month:
        try:
            sheet, all_rows = self._rows()
            for row in all_rows[1:]:
                if (
                    row
                    and _safe_get(row, 1) == month.user_id
                    and _safe_get(row, 3) == str(month.year)
                    and _safe_get(row, 4) == str(month.month)
                ):
                    raise DuplicateError(
                        f"Month already exists: {month.user_id} {month.year}-{month.month}"
                    )

            stored = month.model_copy(deep=True)
            stored.version = 1
            self._client.append_row(sheet, self._month_to_row(stored))
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create month: {e}")

    async def save_month(self, month: Month, expected_version: int) -> Month:
        try:
            sheet, all_rows = self._rows()
            row_number = self._locate(all_rows, month.id)
            if row_number is None:
                raise RecordNotFoundError(f"Month not found: {month.id}")

            # Re-read the version cell right before writing
            actual = int(sheet.cell(row_number, VERSION_COLUMN + 1).value or 0)
            if actual != expected_version:
                raise StaleWriteError(
                    f"Month {month.id} changed since it was read",
                    expected_version=expected_version,
                    actual_version=actual,
                )

            stored = month.model_copy(deep=True)
            stored.version = expected_version + 1
            stored.updated_at = datetime.now(timezone.utc)
            self._client.write_row(sheet, row_number, self._month_to_row(stored))
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save month: {e}")

    async def delete_month(self, month_id: str) -> bool:
        try:
            sheet, all_rows = self._rows()
            row_number = self._locate(all_rows, month_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete month: {e}")


class GoogleSheetsRecurringTemplateStorage(RecurringTemplateStorageInterface):
    """Recurring expense templates, one per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _template_to_row(self, template: RecurringExpenseTemplate) -> list:
        return [
            template.id,
            template.user_id,
            template.category,
            str(template.amount),
            template.note,
            template.tag.value,
            template.created_at.isoformat(),
        ]

    def _row_to_template(self, row: list) -> RecurringExpenseTemplate:
        return RecurringExpenseTemplate(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1),
            category=_safe_get(row, 2),
            amount=_safe_get(row, 3),
            note=_safe_get(row, 4),
            tag=_safe_get(row, 5, "neutral"),
            created_at=datetime.fromisoformat(_safe_get(row, 6)),
        )

    async def list_templates(self, user_id: str) -> list[RecurringExpenseTemplate]:
        try:
            sheet = self._client.get_recurring_sheet()
            return [
                self._row_to_template(row)
                for row in sheet.get_all_values()[1:]
                if row and _safe_get(row, 1) == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list recurring templates: {e}")

    async def get_template(self, template_id: str) -> Optional[RecurringExpenseTemplate]:
        try:
            sheet = self._client.get_recurring_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == template_id:
                    return self._row_to_template(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get recurring template: {e}")

    async def save_template(self, template: RecurringExpenseTemplate) -> RecurringExpenseTemplate:
        try:
            sheet = self._client.get_recurring_sheet()
            row = self._template_to_row(template)
            for row_number, existing in enumerate(sheet.get_all_values()[1:], start=2):
                if existing and existing[0] == template.id:
                    self._client.write_row(sheet, row_number, row)
                    return template
            self._client.append_row(sheet, row)
            return template
        except Exception as e:
            raise StorageError(f"Failed to save recurring template: {e}")

    async def delete_template(self, template_id: str) -> bool:
        try:
            sheet = self._client.get_recurring_sheet()
            for row_number, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == template_id:
                    sheet.delete_rows(row_number)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete recurring template: {e}")


class GoogleSheetsInsightsCacheStorage(InsightsCacheStorageInterface):
    """Cached insights, one row per (user_id, cache_key)."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: InsightsCacheEntry) -> list:
        return [
            entry.user_id,
            entry.cache_key,
            entry.insight_type.value,
            entry.month_id or "",
            json.dumps(entry.insights, default=str),
            entry.data_snapshot,
            entry.generated_at.isoformat(),
            entry.expires_at.isoformat(),
        ]

    def _row_to_entry(self, row: list) -> InsightsCacheEntry:
        return InsightsCacheEntry(
            user_id=_safe_get(row, 0),
            cache_key=_safe_get(row, 1),
            insight_type=InsightType(_safe_get(row, 2)),
            month_id=_safe_get(row, 3) or None,
            insights=json.loads(_safe_get(row, 4, "{}")),
            data_snapshot=_safe_get(row, 5),
            generated_at=datetime.fromisoformat(_safe_get(row, 6)),
            expires_at=datetime.fromisoformat(_safe_get(row, 7)),
        )

    def _matching_rows(self, sheet: gspread.Worksheet, user_id: str, cache_key: Optional[str] = None):
        for row_number, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or _safe_get(row, 0) != user_id:
                continue
            if cache_key is not None and _safe_get(row, 1) != cache_key:
                continue
            yield row_number, row

    async def get_entry(self, user_id: str, cache_key: str) -> Optional[InsightsCacheEntry]:
        try:
            sheet = self._client.get_insights_sheet()
            for _, row in self._matching_rows(sheet, user_id, cache_key):
                return self._row_to_entry(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to read insights cache: {e}")

    async def upsert_entry(self, entry: InsightsCacheEntry) -> InsightsCacheEntry:
        try:
            sheet = self._client.get_insights_sheet()
            row = self._entry_to_row(entry)
            for row_number, _ in self._matching_rows(sheet, entry.user_id, entry.cache_key):
                self._client.write_row(sheet, row_number, row)
                return entry
            self._client.append_row(sheet, row)
            return entry
        except Exception as e:
            raise StorageError(f"Failed to write insights cache: {e}")

    async def delete_entry(self, user_id: str, cache_key: str) -> bool:
        try:
            sheet = self._client.get_insights_sheet()
            for row_number, _ in self._matching_rows(sheet, user_id, cache_key):
                sheet.delete_rows(row_number)
                return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete insights cache entry: {e}")

    async def delete_user_entries(self, user_id: str) -> int:
        try:
            sheet = self._client.get_insights_sheet()
            row_numbers = [number for number, _ in self._matching_rows(sheet, user_id)]
            # Bottom-up so earlier row numbers stay valid
            for row_number in reversed(row_numbers):
                sheet.delete_rows(row_number)
            return len(row_numbers)
        except Exception as e:
            raise StorageError(f"Failed to clear insights cache: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=_safe_get(row, 0),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=_safe_get(row, 6) or None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
            is_user_action=_safe_get(row, 10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event; failures are logged, never raised."""
        try:
            sheet = self._client.get_audit_sheet()
            self._client.append_row(sheet, event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_sheet_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = []
            for row in sheet.get_all_values()[1:]:
                if row and _safe_get(row, 4) == entity_type and _safe_get(row, 5) == entity_id:
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = []
            for row in sheet.get_all_values()[1:]:
                if row and row[0]:
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
