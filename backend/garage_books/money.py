# Overview: Decimal helpers for currency amounts and stock quantities.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")

# Debits and credits are considered equal when they differ by less than this.
BALANCE_TOLERANCE = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Lenient numeric coercion.

    None, empty strings, booleans, NaN/Infinity and anything that does not
    parse as a number become `default`. Floats go through str() so that
    0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def money(value: Any) -> Decimal:
    """Coerce and round to 2 places, half-up."""
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def quantity(value: Any) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def is_zero(value: Any) -> bool:
    return abs(to_decimal(value)) < BALANCE_TOLERANCE
