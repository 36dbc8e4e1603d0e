"""
Field coercion for estimate values.

Estimating systems emit numbers with currency symbols and thousands
separators, booleans as Y/N/1/true, and phone numbers in any shape.  These
helpers are pure and never raise: an unparseable value becomes ``None``
(or ``""`` for text) and the validators decide whether that matters.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

_NUMBER_NOISE = re.compile(r"[,$\s]")
_DIGITS = re.compile(r"\D")

_TRUE_VALUES = frozenset({"true", "yes", "y", "1", "on", "t"})

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y%m%d")


def parse_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    text = _NUMBER_NOISE.sub("", str(value))
    if not text:
        return None
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def parse_int(value: Any) -> int | None:
    number = parse_decimal(value)
    if number is None:
        return None
    return int(number)


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return str(value).strip().lower() in _TRUE_VALUES


def parse_date(value: Any) -> date | None:
    text = str(value or "").strip()
    if not text:
        return None
    # ISO timestamps: keep the date part
    candidate = text[:10] if len(text) > 10 and text[4:5] == "-" else text
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    return None


def format_phone(value: Any) -> str:
    """``(XXX) XXX-XXXX`` for 10-digit numbers (a leading US ``1`` is dropped).

    Anything else is returned trimmed but otherwise unchanged.
    """
    text = str(value or "").strip()
    digits = _DIGITS.sub("", text)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return text
