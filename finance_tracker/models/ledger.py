"""
Core Ledger Models for Finance Tracker

A Month is the aggregate root. It owns two ordered lists of categories
(income and expenses); each category owns its entries.

DESIGN DECISION: Categories come in two historical shapes.
- Itemized: carries a non-empty `entries` list, `amount` is their sum.
- Legacy: flat `amount` + `comment`, no entries (pre-itemization data).

Rather than duck-typing "does it have entries" all over the code, the two
shapes are a pydantic tagged union discriminated on that exact question.
An empty `entries` list reads as legacy, the same way old clients did.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
)


def new_id(prefix: str) -> str:
    """Generate a prefixed unique identifier, e.g. `entry_3f2a...`."""
    return f"{prefix}_{uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class ExpenseTag(str, Enum):
    """Classification of an expense entry, used for breakdown analytics."""
    NEED = "need"
    WANT = "want"
    NEUTRAL = "neutral"


class LedgerSide(str, Enum):
    """Which side of the month a mutation targets."""
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def field_name(self) -> str:
        """Attribute on Month holding this side's categories."""
        return "income" if self is LedgerSide.INCOME else "expenses"

    @property
    def id_prefix(self) -> str:
        return "inc" if self is LedgerSide.INCOME else "exp"


# =============================================================================
# ENTRIES AND CATEGORIES
# =============================================================================

class Entry(BaseModel):
    """
    One atomic transaction line.

    Income entries carry no tag. Expense entries always carry one
    (the entry store defaults it to `neutral`).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: new_id("entry"),
        description="Entry identifier, unique within one side of a month"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Entry amount"
    )
    note: str = Field(
        default="",
        max_length=500,
        description="Free-text note"
    )
    tag: Optional[ExpenseTag] = Field(
        default=None,
        description="need / want / neutral for expenses, None for income"
    )

    @field_validator('note', mode='before')
    @classmethod
    def none_note_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class _CategoryBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        description="Category identifier (inc_... / exp_...)"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name, free text (Rent, Salary, ...)"
    )
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Aggregate amount"
    )
    comment: str = Field(
        default="",
        description="Human-readable breakdown, e.g. '500(rent)+200(No note)'"
    )

    @field_validator('comment', mode='before')
    @classmethod
    def none_comment_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_legacy(self) -> bool:
        return not isinstance(self, ItemizedCategory)


class LegacyCategory(_CategoryBase):
    """A category from before itemized entries existed: amount + comment only."""
    pass


class ItemizedCategory(_CategoryBase):
    """
    A category holding its entries.

    INVARIANT: `amount` equals the sum of `entries` amounts after every
    entry-path mutation. A category whose last entry is deleted is removed
    from the month, so stored itemized categories are never empty.
    """

    entries: list[Entry] = Field(
        ...,
        min_length=1,
        description="Entries in insertion order"
    )


class DisplayCategory(_CategoryBase):
    """
    Read-side view of one category name after grouping for display.

    Never stored. Legacy categories appear here with one synthetic entry.
    """

    entries: list[Entry] = Field(default_factory=list)


def _category_shape(value: Any) -> str:
    if isinstance(value, dict):
        entries = value.get("entries")
    else:
        entries = getattr(value, "entries", None)
    return "itemized" if entries else "legacy"


Category = Annotated[
    Union[
        Annotated[ItemizedCategory, Tag("itemized")],
        Annotated[LegacyCategory, Tag("legacy")],
    ],
    Discriminator(_category_shape),
]


# =============================================================================
# MONTH AGGREGATE
# =============================================================================

class Month(BaseModel):
    """
    Per-(user, year, month) ledger aggregate.

    `total_income`, `total_expense` and `carry_forward` are derived and
    recomputed by `ledger.totals.recalculate` after every mutation.
    `version` is bumped by storage on every successful save and is the
    optimistic-concurrency guard for read-modify-write.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(
        default_factory=lambda: new_id("month"),
        description="Unique month id"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user (opaque to the ledger)"
    )
    month_name: str = Field(
        ...,
        description="Display name, e.g. 'February 2025'"
    )
    year: int = Field(
        ...,
        ge=1,
        le=9999
    )
    month: int = Field(
        ...,
        ge=0,
        le=11,
        description="Month index, 0 = January"
    )

    # Categories
    income: list[Category] = Field(default_factory=list)
    expenses: list[Category] = Field(default_factory=list)

    # Derived totals
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    carry_forward: Decimal = Field(
        default=Decimal("0"),
        description="total_income - total_expense; negative is valid"
    )

    # Concurrency and bookkeeping
    version: int = Field(
        default=0,
        ge=0,
        description="Incremented by storage on every successful save"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def categories(self, side: LedgerSide) -> list:
        """The mutable category list for one side."""
        return getattr(self, side.field_name)

    @property
    def period(self) -> tuple[int, int]:
        return self.year, self.month


class RecurringExpenseTemplate(BaseModel):
    """
    A per-user reusable expense, applied to every newly created month.

    Templates are independent of months: editing or deleting one never
    touches months that already exist.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: new_id("rec"))
    user_id: str = Field(..., min_length=1)
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount applied to each new month"
    )
    note: str = Field(default="", max_length=500)
    tag: ExpenseTag = Field(default=ExpenseTag.NEUTRAL)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('note', mode='before')
    @classmethod
    def none_note_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v
