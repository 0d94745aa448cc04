"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger mutations (load month → mutate → recalculate → save → audit)
2. Insights (load months → cached or freshly generated insights)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A mutation works on a private copy; nothing is stored unless the
  whole mutation succeeded
- Every save is conditional on the version that was read, so a
  concurrent writer can never be silently overwritten
- Storage exceptions never leak: they are translated into the ledger
  error taxonomy (NotFoundError, ConflictError, DependencyError)
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from typing import Any, Callable, Optional
from uuid import UUID

import structlog

from finance_tracker.agents import InsightsAgent
from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.errors import (
    ConcurrentModificationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from finance_tracker.insights import InsightsService
from finance_tracker.ledger import (
    add_category,
    add_entry,
    build_month,
    category_key,
    delete_category,
    delete_entry,
    edit_category,
    edit_entry,
    group_for_display,
    normalize_month,
    previous_period,
)
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.insights import MonthlyInsights, OverviewInsights
from finance_tracker.models.ledger import (
    DisplayCategory,
    LedgerSide,
    Month,
    RecurringExpenseTemplate,
)
from finance_tracker.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsInsightsCacheStorage,
    GoogleSheetsMonthStorage,
    GoogleSheetsRecurringTemplateStorage,
    InMemoryInsightsCacheStorage,
    InMemoryMonthStorage,
    InMemoryRecurringTemplateStorage,
    InsightsCacheStorageInterface,
    MonthStorageInterface,
    RecordNotFoundError,
    RecurringTemplateStorageInterface,
    StaleWriteError,
    StorageError,
)
from finance_tracker.validation import (
    validate_amount,
    validate_category_name,
    validate_identifier,
    validate_note,
    validate_tag,
)


logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates every month ledger operation.

    Mutation flow:
    1. Load the month (missing or foreign → NotFoundError)
    2. Mutate a private copy through the entry store
    3. Totals are recalculated by the entry store as its last step
    4. Save with the version that was read
    5. Audit

    A failure at any step leaves the stored month untouched.
    """

    def __init__(
        self,
        month_storage: MonthStorageInterface,
        template_storage: RecurringTemplateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._months = month_storage
        self._templates = template_storage
        self._audit_logger = audit_logger

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _audit_validation(
        self,
        operation: str,
        error: ValidationError,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                operation=operation,
                field=error.field,
                message=str(error),
                correlation_id=correlation_id,
            )

    async def _dependency_failure(
        self,
        operation: str,
        error: StorageError,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> DependencyError:
        logger.error("storage_failure", operation=operation, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_save_failed(
                operation=operation,
                error_message=str(error),
                entity_id=entity_id,
                correlation_id=correlation_id,
            )
        return DependencyError(f"Storage unavailable during {operation}: {error}")

    async def _load(
        self,
        month_id: Any,
        user_id: Optional[str],
        operation: str,
        correlation_id: UUID,
    ) -> Month:
        month_id = validate_identifier(month_id, "month_id")
        if user_id is not None:
            user_id = validate_identifier(user_id, "user_id")
        try:
            month = await self._months.find_month_by_id(month_id)
        except StorageError as e:
            raise await self._dependency_failure(operation, e, month_id, correlation_id)

        if month is None or (user_id is not None and month.user_id != user_id):
            raise NotFoundError(f"Month not found: {month_id}")
        return month

    async def _save(
        self,
        month: Month,
        expected_version: int,
        operation: str,
        correlation_id: UUID,
    ) -> Month:
        try:
            return await self._months.save_month(month, expected_version)
        except StaleWriteError:
            if self._audit_logger:
                await self._audit_logger.log_concurrent_modification(
                    month_id=month.id,
                    expected_version=expected_version,
                    correlation_id=correlation_id,
                )
            raise ConcurrentModificationError(
                f"Month {month.id} was modified concurrently; reload and retry"
            )
        except RecordNotFoundError:
            raise NotFoundError(f"Month not found: {month.id}")
        except StorageError as e:
            raise await self._dependency_failure(operation, e, month.id, correlation_id)

    async def _mutate(
        self,
        operation: str,
        month_id: Any,
        mutate: Callable[[Month], Any],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
        normalize: bool = True,
    ) -> Month:
        """
        Run one read-modify-write cycle.

        `mutate` receives a private copy of the month; whatever it raises
        propagates and nothing is saved.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            month = await self._load(month_id, user_id, operation, correlation_id)
            expected_version = month.version
            working = month.model_copy(deep=True)
            if normalize:
                normalize_month(working)
            mutate(working)
        except ValidationError as e:
            await self._audit_validation(operation, e, correlation_id)
            raise

        return await self._save(working, expected_version, operation, correlation_id)

    # =========================================================================
    # MONTHS
    # =========================================================================

    async def create_month(
        self,
        user_id: str,
        year: int,
        month_index: int,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Create a month seeded from carry-forward and recurring templates.

        Everything is computed in memory before the single create call,
        so a failed lookup never leaves a partial month behind.

        Raises:
            ValidationError: bad user id, year or month index
            ConflictError: a month already exists for (user, year, month)
            DependencyError: storage unavailable
        """
        correlation_id = correlation_id or create_correlation_id()
        operation = "create_month"

        try:
            # Validates everything before any storage call; every lookup
            # below uses the same normalized user id the month is stored with
            user_id = validate_identifier(user_id, "user_id")
            build_month(user_id, year, month_index)
        except ValidationError as e:
            await self._audit_validation(operation, e, correlation_id)
            raise

        try:
            if await self._months.find_month(user_id, year, month_index) is not None:
                raise ConflictError("Month already exists")

            prev_year, prev_index = previous_period(year, month_index)
            previous = await self._months.find_month(user_id, prev_year, prev_index)
            templates = await self._templates.list_templates(user_id)

            month = build_month(user_id, year, month_index, previous, templates)
            created = await self._months.create_month(month)
        except DuplicateError:
            raise ConflictError("Month already exists")
        except StorageError as e:
            raise await self._dependency_failure(operation, e, None, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_month_created(
                month_id=created.id,
                month_name=created.month_name,
                carry_in=str(previous.carry_forward if previous else 0),
                recurring_count=len(templates),
                correlation_id=correlation_id,
            )
        return created

    async def get_month(self, month_id: str, user_id: Optional[str] = None) -> Month:
        """
        Load one month, normalized to the itemized shape.

        Raises:
            NotFoundError: no such month (or owned by another user)
        """
        month = await self._load(month_id, user_id, "get_month", create_correlation_id())
        return normalize_month(month)

    async def list_months(self, user_id: str) -> list[Month]:
        """All of a user's months, newest first."""
        user_id = validate_identifier(user_id, "user_id")
        try:
            months = await self._months.list_months(user_id)
        except StorageError as e:
            raise await self._dependency_failure("list_months", e, None, create_correlation_id())
        return [normalize_month(m) for m in reversed(months)]

    async def delete_month(
        self,
        month_id: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a month with all its categories and entries.

        Raises:
            NotFoundError: no such month
        """
        correlation_id = correlation_id or create_correlation_id()
        month = await self._load(month_id, user_id, "delete_month", correlation_id)

        try:
            deleted = await self._months.delete_month(month.id)
        except StorageError as e:
            raise await self._dependency_failure("delete_month", e, month.id, correlation_id)
        if not deleted:
            raise NotFoundError(f"Month not found: {month.id}")

        if self._audit_logger:
            await self._audit_logger.log_month_deleted(month.id, correlation_id)

    # =========================================================================
    # ENTRIES
    # =========================================================================

    async def _add_entry(
        self,
        side: LedgerSide,
        month_id: str,
        category: Any,
        amount: Any,
        note: Any,
        tag: Any,
        user_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> Month:
        correlation_id = correlation_id or create_correlation_id()
        saved = await self._mutate(
            f"add_{side.value}_entry",
            month_id,
            lambda m: add_entry(m, side, category, amount, note, tag),
            user_id=user_id,
            correlation_id=correlation_id,
        )

        if self._audit_logger:
            key = category_key(category)
            target = next(c for c in saved.categories(side) if category_key(c.category) == key)
            await self._audit_logger.log_entry_changed(
                event_type=AuditEventType.ENTRY_ADDED,
                month_id=saved.id,
                side=side.value,
                entry_id=target.entries[-1].id,
                details={"category": target.category, "amount": str(target.entries[-1].amount)},
                correlation_id=correlation_id,
            )
        return saved

    async def add_income_entry(
        self,
        month_id: str,
        category: str,
        amount: Any,
        note: Optional[str] = "",
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Add an income entry, merging into an existing category of that name.

        Raises:
            ValidationError: amount not > 0 or empty category
            NotFoundError: no such month
            ConcurrentModificationError: month changed since it was read
            DependencyError: storage unavailable
        """
        return await self._add_entry(
            LedgerSide.INCOME, month_id, category, amount, note, None, user_id, correlation_id
        )

    async def add_expense_entry(
        self,
        month_id: str,
        category: str,
        amount: Any,
        note: Optional[str] = "",
        tag: Optional[str] = None,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Add an expense entry; `tag` defaults to neutral.
        """
        return await self._add_entry(
            LedgerSide.EXPENSE, month_id, category, amount, note, tag, user_id, correlation_id
        )

    async def _edit_entry(
        self,
        side: LedgerSide,
        month_id: str,
        entry_id: str,
        amount: Any,
        note: Any,
        tag: Any,
        user_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> Month:
        correlation_id = correlation_id or create_correlation_id()
        saved = await self._mutate(
            f"edit_{side.value}_entry",
            month_id,
            lambda m: edit_entry(m, side, entry_id, amount, note, tag),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        if self._audit_logger:
            await self._audit_logger.log_entry_changed(
                event_type=AuditEventType.ENTRY_UPDATED,
                month_id=saved.id,
                side=side.value,
                entry_id=entry_id,
                details={"amount": str(amount)},
                correlation_id=correlation_id,
            )
        return saved

    async def edit_income_entry(
        self,
        month_id: str,
        entry_id: str,
        amount: Any,
        note: Optional[str] = "",
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        return await self._edit_entry(
            LedgerSide.INCOME, month_id, entry_id, amount, note, None, user_id, correlation_id
        )

    async def edit_expense_entry(
        self,
        month_id: str,
        entry_id: str,
        amount: Any,
        note: Optional[str] = "",
        tag: Optional[str] = None,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Edit an expense entry. An omitted `tag` keeps the current tag.
        """
        return await self._edit_entry(
            LedgerSide.EXPENSE, month_id, entry_id, amount, note, tag, user_id, correlation_id
        )

    async def _delete_entry(
        self,
        side: LedgerSide,
        month_id: str,
        entry_id: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID],
    ) -> Month:
        correlation_id = correlation_id or create_correlation_id()
        saved = await self._mutate(
            f"delete_{side.value}_entry",
            month_id,
            lambda m: delete_entry(m, side, entry_id),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        if self._audit_logger:
            await self._audit_logger.log_entry_changed(
                event_type=AuditEventType.ENTRY_DELETED,
                month_id=saved.id,
                side=side.value,
                entry_id=entry_id,
                correlation_id=correlation_id,
            )
        return saved

    async def delete_income_entry(
        self,
        month_id: str,
        entry_id: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        return await self._delete_entry(LedgerSide.INCOME, month_id, entry_id, user_id, correlation_id)

    async def delete_expense_entry(
        self,
        month_id: str,
        entry_id: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        return await self._delete_entry(LedgerSide.EXPENSE, month_id, entry_id, user_id, correlation_id)

    # =========================================================================
    # WHOLE CATEGORIES
    # =========================================================================

    async def _category_mutation(
        self,
        side: LedgerSide,
        event_type: AuditEventType,
        operation: str,
        month_id: str,
        mutate: Callable[[Month], Any],
        category_id: Optional[str],
        user_id: Optional[str],
        correlation_id: Optional[UUID],
        normalize: bool,
    ) -> Month:
        correlation_id = correlation_id or create_correlation_id()
        saved = await self._mutate(
            operation,
            month_id,
            mutate,
            user_id=user_id,
            correlation_id=correlation_id,
            normalize=normalize,
        )
        if self._audit_logger:
            await self._audit_logger.log_category_changed(
                event_type=event_type,
                month_id=saved.id,
                side=side.value,
                # A freshly added category is the last one on its side
                category_id=category_id or saved.categories(side)[-1].id,
                correlation_id=correlation_id,
            )
        return saved

    async def delete_income_category(
        self,
        month_id: str,
        category_id: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """Remove an income category and all its entries."""
        return await self._category_mutation(
            LedgerSide.INCOME,
            AuditEventType.CATEGORY_DELETED,
            "delete_income_category",
            month_id,
            lambda m: delete_category(m, LedgerSide.INCOME, category_id),
            category_id,
            user_id,
            correlation_id,
            normalize=True,
        )

    async def delete_expense_category(
        self,
        month_id: str,
        category_id: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """Remove an expense category and all its entries."""
        return await self._category_mutation(
            LedgerSide.EXPENSE,
            AuditEventType.CATEGORY_DELETED,
            "delete_expense_category",
            month_id,
            lambda m: delete_category(m, LedgerSide.EXPENSE, category_id),
            category_id,
            user_id,
            correlation_id,
            normalize=True,
        )

    async def add_income_category(
        self,
        month_id: str,
        category: str,
        amount: Any,
        comment: Optional[str] = "",
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Legacy flat path: append an income category without merging.
        """
        return await self._category_mutation(
            LedgerSide.INCOME,
            AuditEventType.CATEGORY_ADDED,
            "add_income_category",
            month_id,
            lambda m: add_category(m, LedgerSide.INCOME, category, amount, comment),
            None,
            user_id,
            correlation_id,
            normalize=False,
        )

    async def add_expense_category(
        self,
        month_id: str,
        category: str,
        amount: Any,
        comment: Optional[str] = "",
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Legacy flat path: append an expense category without merging.
        """
        return await self._category_mutation(
            LedgerSide.EXPENSE,
            AuditEventType.CATEGORY_ADDED,
            "add_expense_category",
            month_id,
            lambda m: add_category(m, LedgerSide.EXPENSE, category, amount, comment),
            None,
            user_id,
            correlation_id,
            normalize=False,
        )

    async def edit_income_category(
        self,
        month_id: str,
        category_id: str,
        category: str,
        amount: Any,
        comment: Optional[str] = "",
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        """
        Legacy flat path: overwrite name, amount and comment; entries untouched.
        """
        return await self._category_mutation(
            LedgerSide.INCOME,
            AuditEventType.CATEGORY_UPDATED,
            "edit_income_category",
            month_id,
            lambda m: edit_category(m, LedgerSide.INCOME, category_id, category, amount, comment),
            category_id,
            user_id,
            correlation_id,
            normalize=False,
        )

    async def edit_expense_category(
        self,
        month_id: str,
        category_id: str,
        category: str,
        amount: Any,
        comment: Optional[str] = "",
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Month:
        return await self._category_mutation(
            LedgerSide.EXPENSE,
            AuditEventType.CATEGORY_UPDATED,
            "edit_expense_category",
            month_id,
            lambda m: edit_category(m, LedgerSide.EXPENSE, category_id, category, amount, comment),
            category_id,
            user_id,
            correlation_id,
            normalize=False,
        )

    def display_categories(self, month: Month, side: LedgerSide) -> list[DisplayCategory]:
        """Name-grouped view of one side; the month is not modified."""
        return group_for_display(month.categories(side))

    # =========================================================================
    # RECURRING TEMPLATES
    # =========================================================================

    async def list_recurring_templates(self, user_id: str) -> list[RecurringExpenseTemplate]:
        user_id = validate_identifier(user_id, "user_id")
        try:
            return await self._templates.list_templates(user_id)
        except StorageError as e:
            raise await self._dependency_failure(
                "list_recurring_templates", e, None, create_correlation_id()
            )

    async def add_recurring_template(
        self,
        user_id: str,
        category: str,
        amount: Any,
        note: Optional[str] = "",
        tag: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringExpenseTemplate:
        """
        Save a recurring expense applied to every month created afterwards.
        Existing months are not touched.
        """
        correlation_id = correlation_id or create_correlation_id()
        operation = "add_recurring_template"
        try:
            template = RecurringExpenseTemplate(
                user_id=validate_identifier(user_id, "user_id"),
                category=validate_category_name(category),
                amount=validate_amount(amount),
                note=validate_note(note),
                tag=validate_tag(tag) or "neutral",
            )
        except ValidationError as e:
            await self._audit_validation(operation, e, correlation_id)
            raise

        try:
            saved = await self._templates.save_template(template)
        except StorageError as e:
            raise await self._dependency_failure(operation, e, template.id, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_recurring_template_changed(
                event_type=AuditEventType.RECURRING_TEMPLATE_SAVED,
                template_id=saved.id,
                user_id=saved.user_id,
                correlation_id=correlation_id,
            )
        return saved

    async def update_recurring_template(
        self,
        user_id: str,
        template_id: str,
        category: str,
        amount: Any,
        note: Optional[str] = "",
        tag: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringExpenseTemplate:
        """
        Replace a template's category, amount, note and tag.

        Only months created afterwards see the new values. An omitted tag
        keeps the template's current tag.

        Raises:
            ValidationError: bad category, amount, note or tag
            NotFoundError: no such template for this user
        """
        correlation_id = correlation_id or create_correlation_id()
        operation = "update_recurring_template"
        try:
            user_id = validate_identifier(user_id, "user_id")
            template_id = validate_identifier(template_id, "template_id")
            changes = {
                "category": validate_category_name(category),
                "amount": validate_amount(amount),
                "note": validate_note(note),
            }
            new_tag = validate_tag(tag)
        except ValidationError as e:
            await self._audit_validation(operation, e, correlation_id)
            raise

        try:
            current = await self._templates.get_template(template_id)
            if current is None or current.user_id != user_id:
                raise NotFoundError(f"Recurring template not found: {template_id}")
            if new_tag is not None:
                changes["tag"] = new_tag
            saved = await self._templates.save_template(current.model_copy(update=changes))
        except StorageError as e:
            raise await self._dependency_failure(operation, e, template_id, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_recurring_template_changed(
                event_type=AuditEventType.RECURRING_TEMPLATE_SAVED,
                template_id=saved.id,
                user_id=saved.user_id,
                correlation_id=correlation_id,
            )
        return saved

    async def delete_recurring_template(
        self,
        user_id: str,
        template_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Raises:
            NotFoundError: no such template for this user
        """
        correlation_id = correlation_id or create_correlation_id()
        operation = "delete_recurring_template"
        user_id = validate_identifier(user_id, "user_id")
        template_id = validate_identifier(template_id, "template_id")

        try:
            template = await self._templates.get_template(template_id)
            if template is None or template.user_id != user_id:
                raise NotFoundError(f"Recurring template not found: {template_id}")
            await self._templates.delete_template(template_id)
        except StorageError as e:
            raise await self._dependency_failure(operation, e, template_id, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_recurring_template_changed(
                event_type=AuditEventType.RECURRING_TEMPLATE_DELETED,
                template_id=template_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )


class InsightsFlow:
    """
    Orchestrates insight requests.

    The months are always loaded fresh from storage, so the cache snapshot
    reflects the ledger as it is now.
    """

    def __init__(
        self,
        month_storage: MonthStorageInterface,
        insights_service: InsightsService,
    ):
        self._months = month_storage
        self._insights = insights_service

    async def _user_months(self, user_id: str) -> list[Month]:
        try:
            return await self._months.list_months(user_id)
        except StorageError as e:
            raise DependencyError(f"Storage unavailable while loading months: {e}")

    async def overview(self, user_id: str, regenerate: bool = False) -> OverviewInsights:
        user_id = validate_identifier(user_id, "user_id")
        months = await self._user_months(user_id)
        try:
            if regenerate:
                return await self._insights.regenerate_overview_insights(user_id, months)
            return await self._insights.get_overview_insights(user_id, months)
        except StorageError as e:
            raise DependencyError(f"Insights cache unavailable: {e}")

    async def monthly(
        self,
        user_id: str,
        month_id: str,
        regenerate: bool = False,
    ) -> MonthlyInsights:
        """
        Insights for one month, compared with the previous month the user
        actually has (which need not be the previous calendar month).

        Raises:
            NotFoundError: no such month for this user
        """
        user_id = validate_identifier(user_id, "user_id")
        months = await self._user_months(user_id)
        index = next((i for i, m in enumerate(months) if m.id == month_id), None)
        if index is None:
            raise NotFoundError(f"Month not found: {month_id}")

        month = months[index]
        previous = months[index - 1] if index > 0 else None
        try:
            if regenerate:
                return await self._insights.regenerate_monthly_insights(user_id, month, previous)
            return await self._insights.get_monthly_insights(user_id, month, previous)
        except StorageError as e:
            raise DependencyError(f"Insights cache unavailable: {e}")

    async def clear_cache(self, user_id: str, month_id: Optional[str] = None) -> int:
        user_id = validate_identifier(user_id, "user_id")
        if month_id is None:
            return await self._insights.clear_user_cache(user_id)
        return await self._insights.clear_month_cache(user_id, month_id)


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, InsightsFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for in-memory storage (tests, local runs).

    Returns:
        (ledger_flow, insights_flow, sheets_client)
    """
    sheets_client = None
    month_storage: MonthStorageInterface
    template_storage: RecurringTemplateStorageInterface
    cache_storage: InsightsCacheStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            month_storage = GoogleSheetsMonthStorage(sheets_client)
            template_storage = GoogleSheetsRecurringTemplateStorage(sheets_client)
            cache_storage = GoogleSheetsInsightsCacheStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            use_storage = False

    if not use_storage:
        sheets_client = None
        month_storage = InMemoryMonthStorage()
        template_storage = InMemoryRecurringTemplateStorage()
        cache_storage = InMemoryInsightsCacheStorage()
        audit_logger = AuditLogger()  # Local-only logging

    ledger_flow = LedgerFlow(
        month_storage=month_storage,
        template_storage=template_storage,
        audit_logger=audit_logger,
    )

    insights_flow = InsightsFlow(
        month_storage=month_storage,
        insights_service=InsightsService(
            agent=InsightsAgent(),
            cache_storage=cache_storage,
            audit_logger=audit_logger,
        ),
    )

    return ledger_flow, insights_flow, sheets_client
