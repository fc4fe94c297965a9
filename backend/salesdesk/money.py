from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

# Amounts are kept at 5 decimal places and shown at 3.
STORAGE_PRECISION = 5
DISPLAY_PRECISION = 3

ZERO = Decimal("0")

_STORAGE_QUANT = Decimal(1).scaleb(-STORAGE_PRECISION)
_DISPLAY_QUANT = Decimal(1).scaleb(-DISPLAY_PRECISION)


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal:
    """
    Coerce a JSON number/string into Decimal via its string form.

    - None / "" -> default (raises if no default)
    - floats go through str() so 0.1 stays 0.1
    - bools are rejected
    """
    if isinstance(value, Decimal):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValueError("amount is required")
        return default
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def round_for_storage(value: Decimal) -> Decimal:
    """Round to storage precision, midpoint away from zero."""
    return value.quantize(_STORAGE_QUANT, rounding=ROUND_HALF_UP)


def round_for_display(value: Decimal) -> Decimal:
    return value.quantize(_DISPLAY_QUANT, rounding=ROUND_HALF_UP)


def line_total(quantity: int | Decimal, unit_price: Decimal, discount: Decimal = ZERO) -> Decimal:
    return round_for_storage(Decimal(quantity) * unit_price - discount)


def to_json_number(value: Decimal | None) -> float | None:
    """Serialize a Decimal for JSON responses and backend payloads."""
    if value is None:
        return None
    return float(round_for_storage(value))
