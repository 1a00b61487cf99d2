# Overview: Pure stock valuation arithmetic (no database, no Flask).

"""
Stock valuation rules (authoritative)

- Every quantity, unit cost, and total value is a 2-place Decimal, rounded
  half-up, before it is returned. Repeated restocks therefore never drift.
- total_value == round(quantity * unit_cost, 2) for every result.
- Restock with a positive incoming unit cost blends costs by weighted average:
      new_cost = round((qty * cost + add_qty * incoming_cost) / (qty + add_qty), 2)
- Restock without an incoming cost (None or 0) keeps the current cost.
- If the combined quantity is zero the division is skipped and the current
  cost is kept.
- Quantities are never decremented here.
- Inputs and results must fit their columns: quantity and unit_cost up to
  MAX_AMOUNT, total_value up to MAX_TOTAL_VALUE. Anything larger raises
  ValidationError instead of reaching the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, DivisionByZero, InvalidOperation

from ..errors import InventoryInvariantError, ValidationError
from ..money_utils import MAX_AMOUNT, MAX_TOTAL_VALUE, Number, ZERO, to_money


@dataclass(frozen=True)
class Valuation:
    quantity: Decimal
    unit_cost: Decimal
    total_value: Decimal

    def to_dict(self) -> dict:
        return {
            "quantity": str(self.quantity),
            "unit_cost": str(self.unit_cost),
            "total_value": str(self.total_value),
        }


def non_negative(value: Number | None, field: str) -> Decimal:
    try:
        dec = to_money(value, field=field)
    except ValueError as e:
        raise ValidationError(str(e))
    if dec < ZERO:
        raise ValidationError(f"{field} must be >= 0")
    if dec > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return dec


def total_value(quantity: Number, unit_cost: Number) -> Decimal:
    """round(quantity * unit_cost, 2)"""
    return to_money(to_money(quantity) * to_money(unit_cost))


def _bounded(quantity: Decimal, unit_cost: Decimal) -> Valuation:
    if quantity > MAX_AMOUNT:
        raise ValidationError(f"quantity would exceed {MAX_AMOUNT}")
    value = total_value(quantity, unit_cost)
    if value > MAX_TOTAL_VALUE:
        raise ValidationError(f"total_value would exceed {MAX_TOTAL_VALUE}")
    return Valuation(quantity, unit_cost, value)


def create(quantity: Number, unit_cost: Number) -> Valuation:
    qty = non_negative(quantity, "quantity")
    cost = non_negative(unit_cost, "unit_cost")
    return _bounded(qty, cost)


def update(
    current_quantity: Number,
    current_unit_cost: Number,
    new_quantity: Number | None = None,
    new_unit_cost: Number | None = None,
) -> Valuation:
    """Recompute from whichever of quantity/cost changed, else keep the current value."""
    qty = non_negative(current_quantity if new_quantity is None else new_quantity, "quantity")
    cost = non_negative(current_unit_cost if new_unit_cost is None else new_unit_cost, "unit_cost")
    return _bounded(qty, cost)


def restock(
    current_quantity: Number,
    current_unit_cost: Number,
    add_quantity: Number,
    new_unit_cost: Number | None = None,
) -> Valuation:
    """
    Add stock, blending cost by weighted average when an incoming cost is given.

    restock(10, 5, 10, 7) -> Valuation(20.00, 6.00, 120.00)
    restock(0, 0, 5)      -> Valuation(5.00, 0.00, 0.00)
    """
    qty = non_negative(current_quantity, "quantity")
    cost = non_negative(current_unit_cost, "unit_cost")
    add_qty = non_negative(add_quantity, "add_quantity")
    incoming = None if new_unit_cost is None else non_negative(new_unit_cost, "unit_cost")

    new_qty = to_money(qty + add_qty)

    if incoming is not None and incoming > ZERO and new_qty != ZERO:
        try:
            blended = (qty * cost + add_qty * incoming) / new_qty
        except (DivisionByZero, InvalidOperation) as e:
            raise InventoryInvariantError(f"weighted average undefined for quantity {new_qty}") from e
        new_cost = to_money(blended)
    else:
        new_cost = cost

    return _bounded(new_qty, new_cost)
