"""
Ledger Entry Store

Applies single-entry mutations to one side (income or expenses) of a Month
while keeping the category rules intact:

- Categories are keyed by name within a side. Adding an entry under an
  existing name merges into that category instead of creating a duplicate.
- A category's `amount` is the sum of its entries and its `comment` is the
  breakdown string, e.g. "500(rent)+200(No note)".
- Deleting the last entry of a category removes the category.
- A legacy category (amount + comment, no entries) stands for one implicit
  entry. `normalize_month` itemizes them all on read; `add_entry` also
  itemizes one on merge, for months that were never normalized.

Every function validates its input before touching the month, runs
`recalculate` last, and returns the same (mutated) month. Callers that need
all-or-nothing semantics pass in a private copy.

The legacy whole-category functions (`add_category`, `edit_category`)
intentionally never merge same-named categories; that is the historical
behaviour of the flat API and existing data depends on it.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional

from finance_tracker.errors import NotFoundError, ValidationError
from finance_tracker.ledger.totals import recalculate, sum_amounts
from finance_tracker.models.ledger import (
    DisplayCategory,
    Entry,
    ExpenseTag,
    ItemizedCategory,
    LedgerSide,
    LegacyCategory,
    Month,
    new_id,
)
from finance_tracker.validation import (
    validate_amount,
    validate_category_name,
    validate_identifier,
    validate_note,
    validate_tag,
)
from finance_tracker.validation.validator import MAX_NOTE_LENGTH


NO_NOTE = "No note"


# =============================================================================
# HELPERS
# =============================================================================

def format_amount(amount: Decimal) -> str:
    """Render an amount without trailing zeros: 500.00 -> '500', 12.50 -> '12.5'."""
    return f"{amount.normalize():f}"


def breakdown(entries: Iterable[Entry]) -> str:
    return "+".join(
        f"{format_amount(entry.amount)}({entry.note or NO_NOTE})"
        for entry in entries
    )


def category_key(name: str) -> str:
    """
    Key under which categories merge.

    Exact name after stripping surrounding whitespace. Matching is
    case-sensitive: "Rent" and "rent" are different categories.
    """
    return name.strip()


def _find_by_name(categories: list, name: str) -> Optional[int]:
    key = category_key(name)
    for index, category in enumerate(categories):
        if category_key(category.category) == key:
            return index
    return None


def _find_by_id(categories: list, category_id: str) -> Optional[int]:
    for index, category in enumerate(categories):
        if category.id == category_id:
            return index
    return None


def _refresh(category: ItemizedCategory) -> None:
    category.amount = sum_amounts(category.entries)
    category.comment = breakdown(category.entries)


def _entry_tag(side: LedgerSide, tag: Any) -> Optional[ExpenseTag]:
    parsed = validate_tag(tag)
    if side is LedgerSide.INCOME:
        if parsed is not None:
            raise ValidationError("income entries do not carry a tag", field="tag")
        return None
    return parsed or ExpenseTag.NEUTRAL


def implicit_entries(category: LegacyCategory, side: LedgerSide) -> list[Entry]:
    """
    The single entry a legacy category stands for (none if its amount is zero).

    The entry reuses the category id, so every read of the same stored
    category yields the same entry id.
    """
    if category.amount <= 0:
        return []
    return [
        Entry(
            id=category.id,
            amount=category.amount,
            note=category.comment[:MAX_NOTE_LENGTH],
            tag=ExpenseTag.NEUTRAL if side is LedgerSide.EXPENSE else None,
        )
    ]


def itemize(category, side: LedgerSide, extra: Iterable[Entry] = ()) -> ItemizedCategory:
    """
    Convert a legacy category to the itemized shape, appending `extra` entries.

    Itemized categories are returned unchanged apart from the appended entries.
    """
    if not category.is_legacy:
        category.entries.extend(extra)
        _refresh(category)
        return category

    entries = implicit_entries(category, side) + list(extra)
    itemized = ItemizedCategory(
        id=category.id,
        category=category.category,
        amount=sum_amounts(entries),
        comment=breakdown(entries),
        entries=entries,
    )
    return itemized


def normalize_month(month: Month) -> Month:
    """
    Convert every legacy category with an amount into the itemized shape.

    Applied when a month is read for an entry mutation, so downstream code
    sees a single shape. Zero-amount legacy categories have nothing to
    itemize and are left as they are. Totals are unchanged.
    """
    for side in LedgerSide:
        categories = month.categories(side)
        for index, category in enumerate(categories):
            if category.is_legacy and category.amount > 0:
                categories[index] = itemize(category, side)
    return month


# =============================================================================
# ENTRY MUTATIONS
# =============================================================================

def add_entry(
    month: Month,
    side: LedgerSide,
    category_name: Any,
    amount: Any,
    note: Any = "",
    tag: Any = None,
) -> Month:
    """
    Add one entry under `category_name`, merging into an existing category.

    Raises:
        ValidationError: amount not a finite number > 0, empty category name,
                         unknown tag, or a tag on an income entry
    """
    name = validate_category_name(category_name)
    value = validate_amount(amount)
    text = validate_note(note)
    entry_tag = _entry_tag(side, tag)

    categories = month.categories(side)
    entry = Entry(amount=value, note=text, tag=entry_tag)

    index = _find_by_name(categories, name)
    if index is None:
        categories.append(
            ItemizedCategory(
                id=new_id(side.id_prefix),
                category=name,
                amount=value,
                comment=breakdown([entry]),
                entries=[entry],
            )
        )
    else:
        categories[index] = itemize(categories[index], side, [entry])

    return recalculate(month)


def edit_entry(
    month: Month,
    side: LedgerSide,
    entry_id: Any,
    amount: Any,
    note: Any = "",
    tag: Any = None,
) -> Month:
    """
    Replace an entry's amount and note (and tag, for expenses).

    The first entry with a matching id on this side wins. An omitted tag
    keeps the entry's current tag.

    Raises:
        ValidationError: bad amount/note/tag
        NotFoundError: no entry with that id on this side
    """
    entry_id = validate_identifier(entry_id, "entry_id")
    value = validate_amount(amount)
    text = validate_note(note)
    new_tag = validate_tag(tag)
    if side is LedgerSide.INCOME and new_tag is not None:
        raise ValidationError("income entries do not carry a tag", field="tag")

    for category in month.categories(side):
        if category.is_legacy:
            continue
        for entry in category.entries:
            if entry.id == entry_id:
                entry.amount = value
                entry.note = text
                if new_tag is not None:
                    entry.tag = new_tag
                _refresh(category)
                return recalculate(month)

    raise NotFoundError(f"{side.value.capitalize()} entry not found: {entry_id}")


def delete_entry(month: Month, side: LedgerSide, entry_id: Any) -> Month:
    """
    Remove an entry; a category left without entries is removed too.

    Raises:
        NotFoundError: no entry with that id on this side
    """
    entry_id = validate_identifier(entry_id, "entry_id")
    categories = month.categories(side)

    for index, category in enumerate(categories):
        if category.is_legacy:
            continue
        for position, entry in enumerate(category.entries):
            if entry.id == entry_id:
                del category.entries[position]
                if category.entries:
                    _refresh(category)
                else:
                    del categories[index]
                return recalculate(month)

    raise NotFoundError(f"{side.value.capitalize()} entry not found: {entry_id}")


# =============================================================================
# WHOLE-CATEGORY MUTATIONS
# =============================================================================

def delete_category(month: Month, side: LedgerSide, category_id: Any) -> Month:
    """
    Remove a category and all its entries.

    Raises:
        NotFoundError: no category with that id on this side
    """
    category_id = validate_identifier(category_id, "category_id")
    categories = month.categories(side)

    index = _find_by_id(categories, category_id)
    if index is None:
        raise NotFoundError(f"{side.value.capitalize()} category not found: {category_id}")

    del categories[index]
    return recalculate(month)


def add_category(
    month: Month,
    side: LedgerSide,
    category_name: Any,
    amount: Any,
    comment: Any = "",
) -> Month:
    """
    Legacy path: append a flat category. Never merges with an existing name.
    """
    name = validate_category_name(category_name)
    value = validate_amount(amount)
    text = validate_note(comment, field="comment")

    month.categories(side).append(
        LegacyCategory(
            id=new_id(side.id_prefix),
            category=name,
            amount=value,
            comment=text,
        )
    )
    return recalculate(month)


def edit_category(
    month: Month,
    side: LedgerSide,
    category_id: Any,
    category_name: Any,
    amount: Any,
    comment: Any = "",
) -> Month:
    """
    Legacy path: overwrite a category's name, amount and comment in place.

    Entries are left untouched and the renamed category is not merged with
    any other category of the same name.

    Raises:
        ValidationError: bad name/amount/comment
        NotFoundError: no category with that id on this side
    """
    category_id = validate_identifier(category_id, "category_id")
    name = validate_category_name(category_name)
    value = validate_amount(amount)
    text = validate_note(comment, field="comment")

    categories = month.categories(side)
    index = _find_by_id(categories, category_id)
    if index is None:
        raise NotFoundError(f"{side.value.capitalize()} category not found: {category_id}")

    category = categories[index]
    category.category = name
    category.amount = value
    category.comment = text
    return recalculate(month)


# =============================================================================
# READ-SIDE PROJECTION
# =============================================================================

def group_for_display(categories: Iterable) -> list[DisplayCategory]:
    """
    Merge categories by name for display.

    - Same-named categories are merged: entries concatenated, amounts summed
      and the breakdown comment rebuilt from the merged entries.
    - A legacy category with an amount or a comment becomes one synthetic
      entry carrying the category's own id.
    - Categories with zero amount and no entries are dropped.

    Works on copies: the input categories are never modified, and applying
    the projection to its own output returns an equal result.
    """
    grouped: dict[str, DisplayCategory] = {}

    for category in categories:
        entries = [
            entry.model_copy(deep=True)
            for entry in (getattr(category, "entries", None) or [])
        ]
        if not entries and (category.amount > 0 or category.comment):
            entries = [
                Entry(
                    id=category.id,
                    amount=category.amount,
                    note=category.comment[:MAX_NOTE_LENGTH],
                )
            ]

        key = category_key(category.category)
        existing = grouped.get(key)
        if existing is None:
            grouped[key] = DisplayCategory(
                id=category.id,
                category=category.category,
                amount=category.amount,
                comment=category.comment,
                entries=entries,
            )
        else:
            existing.entries.extend(entries)
            existing.amount += category.amount
            if existing.entries:
                existing.comment = breakdown(existing.entries)

    return [
        category for category in grouped.values()
        if category.amount > 0 or category.entries
    ]
