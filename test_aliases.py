"""
test_aliases.py - Property alias resolution tests.

Usage: python test_aliases.py   (or: python -m pytest test_aliases.py)
"""

from __future__ import annotations

import os
import sys

import pytest

# Ensure we can import from project root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from aliases import MISSING, PROPERTY_ALIASES, build_key_index, normalize_key, resolve_alias


@pytest.mark.parametrize(
    "raw",
    ["Payment Method", "payment_method", "paymentMethod", "PAYMENTMETHOD", " payment-method! "],
)
def test_normalize_key_ignores_case_and_punctuation(raw):
    assert normalize_key(raw) == "paymentmethod"


def test_equivalent_spellings_resolve_identically():
    for key in ("Payment Method", "payment_method", "PAYMENTMETHOD"):
        index = build_key_index({key: "Visa"})
        assert resolve_alias(index, "payment_method") == "Visa"


def test_first_alias_in_declared_order_wins():
    index = build_key_index({"Vendor": "Second", "Store": "First-ish", "Merchant": "Winner"})
    assert resolve_alias(index, "merchant") == "Winner"

    index = build_key_index({"Vendor": "Later", "Store": "Earlier"})
    assert resolve_alias(index, "merchant") == "Earlier"


def test_missing_alias_returns_sentinel_not_error():
    index = build_key_index({"Colour": "blue"})
    result = resolve_alias(index, "merchant")
    assert result is MISSING
    assert not result


def test_colliding_raw_keys_do_not_raise_and_are_deterministic():
    properties = {"Total": "10", "total": "20", "TOTAL!": "30"}
    first = resolve_alias(build_key_index(properties), "total")
    second = resolve_alias(build_key_index(dict(properties)), "total")
    assert first == second == "30"


def test_present_key_with_none_value_is_a_match():
    index = build_key_index({"Merchant": None, "Store": "Corner Shop"})
    assert resolve_alias(index, "merchant") is None


def test_empty_or_missing_properties():
    assert build_key_index(None) == {}
    assert resolve_alias(build_key_index({}), "date") is MISSING


def test_unknown_canonical_field_raises_key_error():
    with pytest.raises(KeyError):
        resolve_alias({}, "colour")


def test_alias_table_covers_every_canonical_field():
    assert set(PROPERTY_ALIASES) == {
        "merchant",
        "date",
        "category",
        "subtotal",
        "tax",
        "total",
        "payment_method",
        "summary",
        "logged_at",
    }
    assert PROPERTY_ALIASES["merchant"][:3] == ("merchant", "store", "vendor")


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
