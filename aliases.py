"""
aliases.py - Map user-chosen property names onto canonical expense fields.

Collection owners name their columns freely ("Store", "Paid With",
"total_amount", ...). Each canonical field accepts an ordered list of
spellings; keys are compared after lowercasing and dropping everything
that is not a letter or digit, so "Payment Method", "payment_method" and
"paymentMethod" are the same key.

Aliasing is best-effort: a column named something outside these lists is
simply not picked up.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from logging_config import get_logger

logger = get_logger(__name__)

PROPERTY_ALIASES: dict[str, tuple[str, ...]] = {
    "merchant": ("merchant", "store", "vendor", "payee", "shop", "place", "company"),
    "date": (
        "date",
        "transactiondate",
        "purchasedate",
        "spenton",
        "spentdate",
        "expensedate",
    ),
    "category": ("category", "type", "group", "expensecategory"),
    "subtotal": ("subtotal", "pretax", "beforetax", "net", "amountbeforetax"),
    "tax": ("tax", "vat", "gst"),
    "total": (
        "total",
        "amount",
        "cost",
        "spent",
        "price",
        "sum",
        "totalamount",
        "amounttotal",
    ),
    "payment_method": (
        "paymentmethod",
        "payment",
        "paidwith",
        "method",
        "card",
        "paymenttype",
    ),
    "summary": ("summary", "note", "notes", "description", "memo", "details"),
    "logged_at": ("loggedat", "createdat", "logtime", "timestamp"),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


class _Missing:
    """Sentinel type for "no alias matched"."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def normalize_key(key: Any) -> str:
    """Lowercase a property name and drop every non-alphanumeric character."""
    return _NON_ALNUM.sub("", str(key).lower())


def build_key_index(properties: Mapping[str, Any] | None) -> dict[str, Any]:
    """Index a property bag by normalized key.

    Built once per raw item. When two raw keys collapse to the same
    normalized key, the later one in iteration order wins.
    """
    index: dict[str, Any] = {}
    if not properties:
        return index

    for raw_key, value in properties.items():
        normalized = normalize_key(raw_key)
        if normalized in index:
            logger.debug(
                "alias_key_collision | normalized=%r | raw=%r | kept='last'",
                normalized,
                raw_key,
            )
        index[normalized] = value
    return index


def resolve_alias(index: Mapping[str, Any], field: str) -> Any:
    """Return the raw value stored under the first matching alias of `field`.

    `index` must come from `build_key_index`. A key that is present counts
    as a match even if its value is None. Returns MISSING when no alias is
    present. Raises KeyError for an unknown canonical field.
    """
    aliases = PROPERTY_ALIASES[field]
    for alias in aliases:
        key = normalize_key(alias)
        if key in index:
            return index[key]
    return MISSING
