from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

# Column limits: Numeric(12, 2) for amounts and quantities, Numeric(14, 2) for stock totals
MAX_AMOUNT = Decimal("9999999999.99")
MAX_TOTAL_VALUE = Decimal("999999999999.99")


def to_money(value: Optional[Number], *, field: str = "value") -> Decimal:
    """
    Normalize a monetary or quantity value to a 2-place Decimal (half-up).

    - None -> 0.00
    - floats go through str() so 0.1 stays 0.10 instead of 0.1000000000000000055...
    - bool is rejected (it is an int subclass, never a quantity)
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be a number")
    if not dec.is_finite():
        raise ValueError(f"{field} must be a finite number")
    try:
        return dec.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"{field} is too large")


def format_money(value: Optional[Decimal]) -> str:
    """Serialize a stored 2-place value as a fixed "0.00" string."""
    return str(to_money(value))
