# Overview: Service-layer operations for stock inventory; encapsulates business logic and database work.

"""
Stock inventory invariants

- total_value == round(quantity * unit_cost, 2) after every write; the three
  values always come from inventory_valuation, never from request input.
- Restock is a read-modify-write on one row: it runs under a row lock
  (SELECT ... FOR UPDATE where supported) and the version_id column turns a
  lost update into StaleDataError, which run_with_retry replays.
- This module never decrements quantity on its own.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import StockInventory
from catering.time_utils import parse_iso_date, parse_iso_datetime, utcnow
from . import inventory_valuation
from .concurrency import lock_for_update, run_with_retry


# Plain attributes that can be written without touching the valuation
DESCRIPTIVE_FIELDS = {
    "name",
    "description",
    "category",
    "unit",
    "minimum_quantity",
    "supplier",
    "location",
    "expiry_date",
    "last_restocked_date",
    "is_active",
    "notes",
}


def _get_item(item_id: int, *, lock: bool = False) -> StockInventory:
    query = db.session.query(StockInventory).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError(f"Stock inventory {item_id} not found")
    return item


def _apply_valuation(item: StockInventory, valuation: inventory_valuation.Valuation) -> None:
    item.quantity = valuation.quantity
    item.unit_cost = valuation.unit_cost
    item.total_value = valuation.total_value


def _apply_descriptive(item: StockInventory, fields: dict) -> None:
    for key, value in fields.items():
        if key not in DESCRIPTIVE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")
        if key == "minimum_quantity":
            value = inventory_valuation.non_negative(value, key)
        elif key == "expiry_date" and isinstance(value, str):
            value = parse_iso_date(value)
        elif key == "last_restocked_date" and isinstance(value, str):
            value = parse_iso_datetime(value)
        setattr(item, key, value)


def get_stock_item(item_id: int) -> StockInventory:
    return _get_item(item_id)


def create_stock_item(*, name: str, unit: str, quantity=0, unit_cost=0, **fields) -> StockInventory:
    """Create a stock item; total_value is derived, never accepted."""
    if "total_value" in fields:
        raise ValidationError("total_value is derived and cannot be set")
    valuation = inventory_valuation.create(quantity, unit_cost)

    def _op():
        item = StockInventory(name=name, unit=unit, is_active=True)
        _apply_descriptive(item, fields)
        _apply_valuation(item, valuation)
        db.session.add(item)
        db.session.commit()
        return item

    item = run_with_retry(_op)
    current_app.logger.info("Created stock item %s (%s)", item.id, item.name)
    return item


def update_stock_item(item_id: int, patch: dict) -> StockInventory:
    """
    Update a stock item.

    quantity/unit_cost are optional; whichever is missing keeps its current
    value and total_value is recomputed in both cases.
    """
    patch = dict(patch)
    if "total_value" in patch:
        raise ValidationError("total_value is derived and cannot be set")
    new_quantity = patch.pop("quantity", None)
    new_unit_cost = patch.pop("unit_cost", None)

    def _op():
        item = _get_item(item_id, lock=True)
        valuation = inventory_valuation.update(item.quantity, item.unit_cost, new_quantity, new_unit_cost)
        _apply_descriptive(item, patch)
        _apply_valuation(item, valuation)
        db.session.commit()
        return item

    return run_with_retry(_op)


def restock_stock_item(item_id: int, *, quantity, unit_cost=None) -> StockInventory:
    """
    Add quantity to a stock item, weighted-averaging the cost when unit_cost > 0.

    Stamps last_restocked_date.
    """
    def _op():
        item = _get_item(item_id, lock=True)
        valuation = inventory_valuation.restock(item.quantity, item.unit_cost, quantity, unit_cost)
        _apply_valuation(item, valuation)
        item.last_restocked_date = utcnow()
        db.session.commit()
        return item

    item = run_with_retry(_op)
    current_app.logger.info(
        "Restocked item %s: +%s -> qty=%s unit_cost=%s total=%s",
        item.id, quantity, item.quantity, item.unit_cost, item.total_value,
    )
    return item


def list_stock_items(
    *,
    category: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    below_minimum: bool = False,
    expiring_before: date | None = None,
) -> list[StockInventory]:
    q = db.session.query(StockInventory)
    if category:
        q = q.filter(StockInventory.category == category)
    if is_active is not None:
        q = q.filter(StockInventory.is_active.is_(is_active))
    if search:
        q = q.filter(StockInventory.name.ilike(f"%{search}%"))
    if below_minimum:
        q = q.filter(StockInventory.quantity < StockInventory.minimum_quantity)
    if expiring_before is not None:
        q = q.filter(
            StockInventory.expiry_date.isnot(None),
            StockInventory.expiry_date <= expiring_before,
        )
    return q.order_by(StockInventory.created_at.desc(), StockInventory.id.desc()).all()


def list_low_stock() -> list[StockInventory]:
    """Active items whose quantity has fallen under minimum_quantity."""
    return list_stock_items(is_active=True, below_minimum=True)


def delete_stock_item(item_id: int) -> None:
    item = _get_item(item_id)
    db.session.delete(item)
    db.session.commit()


def bulk_delete_stock_items(item_ids: list[int]) -> int:
    """Delete every listed item; unknown ids fail the whole call before any delete."""
    ids = sorted(set(item_ids))
    found = db.session.query(StockInventory).filter(StockInventory.id.in_(ids)).all()
    missing = set(ids) - {item.id for item in found}
    if missing:
        raise NotFoundError(
            f"Stock inventory not found: {', '.join(str(i) for i in sorted(missing))}",
            details={"missing_ids": sorted(missing)},
        )
    for item in found:
        db.session.delete(item)
    db.session.commit()
    return len(found)
