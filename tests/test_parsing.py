from datetime import date
from decimal import Decimal

import pytest

from slipscan.utils.parsing import (
    clean_text,
    parse_amount,
    parse_date_lenient,
    parse_date_strict,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("$17.82", Decimal("17.82")),
        ("17.8", Decimal("17.80")),
        ("1,234.5", Decimal("1234.50")),
        ("USD 12", Decimal("12.00")),
        ("-4.00", Decimal("4.00")),
        ("12.", Decimal("12.00")),
        (".5", Decimal("0.50")),
        ("1.2.3", Decimal("1.20")),
        ("2.345", Decimal("2.35")),
        (7, Decimal("7.00")),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


@pytest.mark.parametrize("value", [None, "", "n/a", "$", ".", "9" * 40])
def test_parse_amount_misses(value):
    assert parse_amount(value) is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("  Demo   Restaurant \t", "Demo Restaurant"),
        ("Line\nBreak", "Line Break"),
        ("", ""),
    ],
)
def test_clean_text(value, expected):
    assert clean_text(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-01-15", date(2024, 1, 15)),
        ("01/15/2024", date(2024, 1, 15)),
        ("Jan 15, 2024", date(2024, 1, 15)),
        ("15 January 2024", date(2024, 1, 15)),
    ],
)
def test_parse_date_lenient(value, expected):
    assert parse_date_lenient(value) == expected


@pytest.mark.parametrize(
    "value",
    [None, "", "   ", "smudged", "99/99/9999", "10:30", "Monday", "32", "January 2024"],
)
def test_parse_date_lenient_misses(value):
    assert parse_date_lenient(value) is None


def test_parse_date_strict():
    formats = ("%B %d %Y", "%b %d %Y")
    assert parse_date_strict("March  3, 2024", formats) == date(2024, 3, 3)
    assert parse_date_strict("Mar 3 2024", formats) == date(2024, 3, 3)
    assert parse_date_strict("Smarch 3, 2024", formats) is None
