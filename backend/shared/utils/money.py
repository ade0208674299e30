"""
Money helpers.

Amounts stay ``Decimal`` through every computation and are quantized to
currency minor units only when persisted or transmitted.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a provider/DB value to Decimal without float rounding.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its binary
    expansion. ``None`` and empty strings become zero.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e


def quantize_money(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Fixed 2-decimal string for JSON payloads."""
    return str(quantize_money(value))
