"""Helpers for parsing, converting and formatting monetary amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

MINOR_UNITS_PER_MAJOR = 100
# Largest amount a signed 64-bit integer column can hold.
MAX_MINOR_UNITS = 2**63 - 1

_CURRENCY_SYMBOLS = "$€£¥"


def parse_amount(value: Any) -> Optional[Decimal]:
    """Coerce form input to a :class:`~decimal.Decimal`.

    Blank input coerces to zero, mirroring how browsers submit an empty
    number input. ``None`` is returned when the text is not a finite number.
    Currency symbols and thousands separators are stripped first, so
    ``"$1,234.50"`` parses as ``Decimal("1234.50")``.
    """

    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        value = str(value)

    text = str(value).strip()
    while text and text[0] in _CURRENCY_SYMBOLS:
        text = text[1:].lstrip()
    text = text.replace(",", "").replace("_", "").replace(" ", "")
    if not text:
        return Decimal(0)

    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Return ``amount`` in integer minor units, rounding half up.

    >>> to_minor_units(Decimal("25.50"))
    2550
    """

    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    cents = (amount * MINOR_UNITS_PER_MAJOR).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(cents)


def from_minor_units(amount: int | None) -> Decimal:
    """Return minor units as a major-unit Decimal with two places."""

    return (Decimal(amount or 0) / MINOR_UNITS_PER_MAJOR).quantize(
        Decimal("0.01")
    )


def format_currency(amount: int | None, symbol: str = "$") -> str:
    """Format minor units for display, e.g. ``123456`` -> ``"$1,234.56"``."""

    major = from_minor_units(amount)
    sign = "-" if major < 0 else ""
    return f"{sign}{symbol}{abs(major):,.2f}"
