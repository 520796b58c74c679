"""Value formatting helpers for contract placeholders."""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Literal

FormatKind = Literal["currency", "date", "fte", "number", "text"]

_CURRENCY_NOISE_RE = re.compile(r"[^0-9.\-]")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

_CURRENCY_HINTS = ("salary", "bonus", "amount", "wage")
_NUMBER_HINTS = ("target", "factor")

_SMART_CHAR_MAP = {
    "\u201c": "\"",
    "\u201d": "\"",
    "\u2018": "'",
    "\u2019": "'",
    "\u2013": "-",
    "\u2014": "--",
    "\u2026": "...",
    "\u00a0": " ",
}


def infer_format_kind(field_name: str) -> FormatKind:
    """Guess a format from the field name using case-insensitive substrings."""

    lowered = field_name.lower()
    if any(hint in lowered for hint in _CURRENCY_HINTS):
        return "currency"
    if "date" in lowered:
        return "date"
    if "fte" in lowered:
        return "fte"
    if any(hint in lowered for hint in _NUMBER_HINTS):
        return "number"
    return "text"


def parse_currency_amount(value: Any) -> Decimal | None:
    """Parse a currency-ish value, ignoring symbols and separators."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))

    cleaned = _CURRENCY_NOISE_RE.sub("", str(value))
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def format_currency(value: Any, symbol: str = "$") -> str:
    """Format as whole currency units with thousands separators.

    >>> format_currency(1000)
    '$1,000'
    >>> format_currency("invalid")
    '$0'
    """

    amount = parse_currency_amount(value)
    if amount is None:
        return f"{symbol}0"

    rounded = amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,}"


def format_date(value: Any) -> str:
    """Convert ``YYYY-MM-DD`` to ``MM/DD/YYYY``; other strings pass through."""

    if isinstance(value, datetime | date):
        return value.strftime("%m/%d/%Y")
    if not value or not isinstance(value, str):
        return ""

    match = _ISO_DATE_RE.match(value)
    if match:
        year, month, day = match.groups()
        return f"{month}/{day}/{year}"
    return value


def parse_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).replace(",", "").strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def format_fte(value: Any) -> str:
    """Format an FTE value with two decimals."""

    number = parse_float(value)
    if number is None:
        return str(value)
    return f"{number:.2f}"


def format_number(value: Any) -> str:
    """Format a plain number with thousands separators (up to 3 decimals)."""

    number = parse_float(value)
    if number is None:
        return str(value)
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def normalize_smart_quotes(text: str) -> str:
    """Replace typographic quotes, dashes and spaces with ASCII equivalents."""

    return "".join(_SMART_CHAR_MAP.get(char, char) for char in text)
