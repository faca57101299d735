# Overview: Decimal helpers for currency and tax-rate fields.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class MoneyError(ValueError):
    """Raised when a value cannot be read as a decimal amount."""


def to_decimal(value: Any, *, default: Decimal | None = None) -> Decimal:
    """
    Coerce a wire value (str, int, float, Decimal, None) to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    None and "" fall back to ``default`` (ZERO when not given).
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return ZERO if default is None else default
    if isinstance(value, bool):
        raise MoneyError("boolean is not an amount")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise MoneyError(f"not a decimal amount: {value!r}")


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"${round_cents(value):,.2f}"
