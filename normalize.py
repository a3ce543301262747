"""
normalize.py - Turn raw collection items into canonical `Expense` records.

Public functions:
    coerce_string(value)      -> str | None
    coerce_amount(value)      -> Decimal (>= 0)
    normalize_item(item)      -> Expense
    normalize_items(items)    -> list[Expense]

Design principles:
    - Total: every input produces a record, malformed fields fall back to
      defaults instead of raising
    - Pure: no I/O, no shared state
    - One bad item degrades only its own fields, never the batch
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from aliases import MISSING, build_key_index, resolve_alias
from logging_config import get_logger
from models import DEFAULT_CATEGORY, UNKNOWN, ZERO, CollectionItem, Expense

logger = get_logger(__name__)

_AMOUNT_JUNK = re.compile(r"[^0-9.\-]+")

# Sub-fields tried, in order, when a property value is a nested object
# (select options, linked records, rich values).
OBJECT_TEXT_KEYS: tuple[str, ...] = ("title", "name", "value")


def coerce_string(value: Any) -> str | None:
    """Render a raw property value as text, or None when it has no text form."""
    if value is None or value is MISSING or isinstance(value, bool):
        return None

    if isinstance(value, str):
        return value

    if isinstance(value, int):
        try:
            return str(value)
        except ValueError:
            # Past the interpreter's int-to-str digit limit.
            return None

    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)

    if isinstance(value, Decimal):
        return str(value)

    if isinstance(value, Mapping):
        for key in OBJECT_TEXT_KEYS:
            candidate = value.get(key)
            if isinstance(candidate, str):
                return candidate
        return None

    if isinstance(value, (list, tuple)):
        parts = [coerce_string(entry) for entry in value]
        joined = ", ".join(part for part in parts if part)
        return joined or None

    return None


def coerce_amount(value: Any) -> Decimal:
    """Parse a raw property value into a non-negative Decimal amount.

    Strings keep only digits, '.' and '-' before parsing ("$1,247.83" ->
    1247.83). Unparsable, non-finite and negative values become 0.
    """
    if value is None or value is MISSING or isinstance(value, (bool, list, tuple)):
        return ZERO

    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            logger.debug("coerce_amount | unconvertible_number | type=%s | fallback=0", type(value).__name__)
            return ZERO
    else:
        text = coerce_string(value)
        if not text:
            return ZERO
        cleaned = _AMOUNT_JUNK.sub("", text)
        if not cleaned:
            return ZERO
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            logger.debug("coerce_amount | parse_failed | raw=%r | fallback=0", value)
            return ZERO

    if not amount.is_finite():
        logger.debug("coerce_amount | non_finite=%r | fallback=0", value)
        return ZERO
    if amount < 0:
        logger.debug("coerce_amount | negative=%r | fallback=0", value)
        return ZERO
    return amount


def _as_item(item: CollectionItem | Mapping[str, Any]) -> CollectionItem:
    if isinstance(item, CollectionItem):
        return item
    try:
        return CollectionItem.model_validate(item)
    except ValidationError as exc:
        logger.warning(
            "normalize_item | invalid_item_shape | errors=%s | fallback='bare item'",
            exc.error_count(),
        )
        item_id = item.get("id") if isinstance(item, Mapping) else None
        return CollectionItem(id="" if item_id is None else str(item_id))


def normalize_item(item: CollectionItem | Mapping[str, Any]) -> Expense:
    """Map one raw collection item onto the canonical expense schema."""
    raw = _as_item(item)
    index = build_key_index(raw.properties)

    def text(field: str) -> str | None:
        return coerce_string(resolve_alias(index, field))

    def amount(field: str) -> Decimal:
        return coerce_amount(resolve_alias(index, field))

    merchant = (
        text("merchant")
        or coerce_string(raw.merchant)
        or raw.title
        or UNKNOWN
    )

    subtotal = amount("subtotal")
    tax = amount("tax")
    total = amount("total")
    if not total and subtotal:
        total = subtotal

    expense = Expense(
        id=raw.id,
        title=raw.title or merchant,
        merchant=merchant,
        date=text("date") or "",
        category=text("category") or DEFAULT_CATEGORY,
        subtotal=subtotal,
        tax=tax,
        total=total,
        payment_method=text("payment_method") or UNKNOWN,
        summary=text("summary") or "",
        logged_at=text("logged_at") or "",
    )
    logger.debug(
        "normalize_item | id=%s | merchant=%r | date=%r | total=%s",
        expense.id,
        expense.merchant,
        expense.date,
        expense.total,
    )
    return expense


def normalize_items(items: Iterable[Any] | None) -> list[Expense]:
    """Normalize a batch of raw items, skipping entries that are not objects."""
    if items is None:
        return []

    expenses: list[Expense] = []
    skipped = 0
    for position, item in enumerate(items):
        if not isinstance(item, (CollectionItem, Mapping)):
            skipped += 1
            logger.warning(
                "normalize_items | skipped_non_object | position=%s | type=%s",
                position,
                type(item).__name__,
            )
            continue
        expenses.append(normalize_item(item))

    logger.info("normalize_items | normalized=%s | skipped=%s", len(expenses), skipped)
    return expenses
