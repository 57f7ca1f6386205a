import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil import parser as dateutil_parser

CENTS = Decimal("0.01")

_NON_NUMERIC = re.compile(r"[^0-9.]")
# Longest leading decimal number, e.g. "12.50" from "12.50.7"
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_WHITESPACE = re.compile(r"\s+")


def clean_text(text: object) -> str:
    """Trim the text and collapse internal whitespace runs to one space."""
    return _WHITESPACE.sub(" ", str(text).strip())


def parse_amount(value: object) -> Decimal | None:
    """
    Parse a printed amount such as "$1,234.50" into a two-decimal Decimal.

    Every character other than digits and "." is dropped first, so currency
    symbols, thousands separators and signs are ignored. Returns None when no
    number remains.
    """
    if value is None:
        return None

    cleaned = _NON_NUMERIC.sub("", str(value))
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None

    try:
        return Decimal(match.group(0)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the decimal context can hold
        return None


# dateutil fills missing parts from its default, so a value is only a full
# date if two different defaults give the same result
_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


def parse_date_lenient(value: str | None) -> date | None:
    """
    Parse free-form date text with dateutil; None if it isn't a date.

    Text missing the year, month or day (a bare time, a weekday, a lone
    number) is not a date.
    """
    if not value or not value.strip():
        return None
    try:
        first, second = (
            dateutil_parser.parse(value, default=default) for default in _DEFAULTS
        )
    except (ValueError, OverflowError):
        return None
    if first != second:
        return None
    return first.date()


def parse_date_strict(value: str, formats: Iterable[str]) -> date | None:
    """Parse with the first matching strptime format; None if none match."""
    normalized = clean_text(value).replace(",", "")
    for fmt in formats:
        try:
            return datetime.strptime(normalized, fmt).date()
        except ValueError:
            continue
    return None
