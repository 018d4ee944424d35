from __future__ import annotations

import math

import pytest

from autojournal.ingest.numbers import SEPARATOR_RULES, parse_number, resolve_separators


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$1,234.56", 1234.56),
        ("(500.00)", -500.0),
        ("($500.00)", -500.0),
        ("$(500.00)", -500.0),
        ("500-", -500.0),
        ("-12.5", -12.5),
        ("$-40", -40.0),
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("€ 12,5", 12.5),
        ("1,234567", 1234567.0),
        ("1.2.3", 12.3),
        ("  42  ", 42.0),
        ("100%", 100.0),
    ],
)
def test_parse_number_handles_broker_formats(raw, expected):
    assert parse_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "   ", ".", "-", "N/A", "abc", "$"])
def test_parse_number_returns_none_for_unusable_cells(raw):
    assert parse_number(raw) is None


def test_parse_number_passes_numbers_through():
    assert parse_number(12) == 12.0
    assert parse_number(-3.5) == -3.5
    assert parse_number(0) == 0.0
    assert parse_number(math.inf) is None
    assert parse_number(float("nan")) is None
    assert parse_number(True) is None


def test_short_comma_tail_is_read_as_decimal_mark():
    # Ambiguous by construction: a three digit tail after a lone comma is a decimal.
    assert parse_number("1,234") == pytest.approx(1.234)


def test_separator_rules_are_ordered_and_named():
    assert [rule.name for rule in SEPARATOR_RULES] == [
        "plain_decimal",
        "comma_decimal",
        "comma_thousands",
        "later_separator_decimal",
        "last_period_decimal",
    ]
    assert resolve_separators("1.234.567,8") == "1234567.8"
    assert resolve_separators("1,234,567.8") == "1234567.8"
