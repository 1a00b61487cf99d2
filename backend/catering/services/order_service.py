# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order lifecycle (authoritative)

- create_order() allocates the order number inside the insert transaction.
  A unique violation on order_number (a number taken outside the counter,
  e.g. by an import) resyncs the counter and retries, at most
  ORDER_NUMBER_MAX_ATTEMPTS times, then raises ConflictError.
- New orders start at quote_pending / unpaid / revision 0.
- Money is stored as 2-place Decimal; grand_total is
      total + total_tax + total_charges + delivery_charge - discount - manual_discount
  and must fit its column: 0 <= grand_total <= MAX_AMOUNT.
- Status changes go through apply_order_patch() -> order_workflow_service,
  for single and bulk updates alike.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from ..extensions import db
from ..models import Order
from ..models.orders import INITIAL_STATUS, MONEY_FIELDS, ORDER_STATUSES, TERMINAL_STATUSES
from ..money_utils import MAX_AMOUNT, ZERO, to_money
from catering.time_utils import start_of_day, utcnow
from .concurrency import run_with_retry
from .order_number_service import allocate_order_number, normalize_prefix, resync_sequence
from .order_workflow_service import (
    StatusChange,
    apply_status_change,
    check_delivery_associations,
    get_order_for_update,
    validate_order_type,
    validate_status,
)
from .payment_status_service import apply_payment_status, validate_payment_status, validate_payment_type
from .reference_data_service import missing_references


TEXT_FIELDS = {
    "customer_note",
    "note",
    "packaging_note",
    "dietary_res",
    "reheat_method",
    "tail_number",
    "delivery_date",
    "delivery_time",
    "priority",
    "payment_info",
}
REFERENCE_FIELDS = {"customer_id", "caterer_id", "delivery_airport_id"}

CREATE_FIELDS = (
    TEXT_FIELDS
    | REFERENCE_FIELDS
    | {"payment_type", "total_quantity", "delivery_charge"}
    | (set(MONEY_FIELDS) - {"grand_total"})
)

# Fields a status/assignment patch may carry (single and bulk updates)
PATCH_FIELDS = {"status", "payment_status", "caterer_id", "delivery_airport_id"}

UPDATE_FIELDS = TEXT_FIELDS | REFERENCE_FIELDS | PATCH_FIELDS | {
    "type",
    "payment_type",
    "vendor_cost",
    "manual_discount",
}

# Order stages used by the admin list views
STAGE_STATUSES = {
    "active": tuple(s for s in ORDER_STATUSES if s != "out_for_delivery" and s not in TERMINAL_STATUSES),
    "closed": ("out_for_delivery",) + tuple(s for s in ORDER_STATUSES if s in TERMINAL_STATUSES),
}

TIMEFRAME_DAYS = {"lifetime": None, "month": 30, "week": 7}


def _money(value, field: str) -> Decimal:
    try:
        amount = to_money(value, field=field)
    except ValueError as e:
        raise ValidationError(str(e))
    if amount < ZERO:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def compute_grand_total(
    *,
    total=0,
    total_tax=0,
    total_charges=0,
    delivery_charge=0,
    discount=0,
    manual_discount=0,
) -> Decimal:
    return to_money(
        to_money(total)
        + to_money(total_tax)
        + to_money(total_charges)
        + to_money(delivery_charge)
        - to_money(discount)
        - to_money(manual_discount)
    )


def _check_grand_total(grand_total: Decimal) -> None:
    if grand_total < ZERO:
        raise ValidationError("Grand total can't be less than zero")
    if grand_total > MAX_AMOUNT:
        raise ValidationError(f"Grand total can't exceed {MAX_AMOUNT}")


def _recompute_grand_total(order: Order) -> None:
    grand_total = compute_grand_total(
        total=order.total,
        total_tax=order.total_tax,
        total_charges=order.total_charges,
        delivery_charge=order.delivery_charge,
        discount=order.discount,
        manual_discount=order.manual_discount,
    )
    _check_grand_total(grand_total)
    order.grand_total = grand_total


def _default_delivery_charge(order_type: str) -> Decimal:
    if order_type != "delivery":
        return ZERO
    return _money(current_app.config.get("DEFAULT_DELIVERY_CHARGE", 0), "delivery_charge")


def _check_references(values: dict) -> None:
    problems = missing_references(values)
    if problems:
        raise ValidationError("; ".join(problems))


def _is_order_number_conflict(exc: IntegrityError) -> bool:
    message = str(getattr(exc, "orig", exc))
    return "order_number" in message


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _insert_with_number(values: dict, prefix: str) -> Order:
    attempts = max(1, int(current_app.config.get("ORDER_NUMBER_MAX_ATTEMPTS", 3)))

    for attempt in range(1, attempts + 1):
        def _op():
            order = Order(order_number=allocate_order_number(prefix), **values)
            db.session.add(order)
            db.session.commit()
            return order

        try:
            return run_with_retry(_op)
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_order_number_conflict(exc):
                raise
            current_app.logger.warning(
                "Order number collision for prefix %s (attempt %d/%d)", prefix, attempt, attempts
            )
            resync_sequence(prefix)

    raise ConflictError(
        f"Could not allocate a unique order number for prefix {prefix} after {attempts} attempts",
        details={"prefix": prefix, "attempts": attempts},
    )


def create_order(*, order_type: str, prefix: str | None = None, **fields) -> Order:
    """
    Create an order at quote_pending with a freshly allocated order number.

    fields: any of CREATE_FIELDS. Money fields default to 0.00. Delivery
    orders get DEFAULT_DELIVERY_CHARGE unless delivery_charge is given.
    """
    validate_order_type(order_type)
    unknown = set(fields) - CREATE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    validate_payment_type(fields.get("payment_type"))
    _check_references(fields)
    prefix = normalize_prefix(prefix if prefix is not None else current_app.config["ORDER_NUMBER_PREFIX"])

    values = {k: v for k, v in fields.items() if k in TEXT_FIELDS | REFERENCE_FIELDS | {"payment_type"}}
    for field in set(MONEY_FIELDS) - {"grand_total", "delivery_charge"}:
        values[field] = _money(fields.get(field), field)
    if "delivery_charge" in fields:
        values["delivery_charge"] = _money(fields["delivery_charge"], "delivery_charge")
    else:
        values["delivery_charge"] = _default_delivery_charge(order_type)

    total_quantity = fields.get("total_quantity") or 0
    if isinstance(total_quantity, bool) or not isinstance(total_quantity, int) or total_quantity < 0:
        raise ValidationError("total_quantity must be a non-negative integer")

    grand_total = compute_grand_total(
        total=values["total"],
        total_tax=values["total_tax"],
        total_charges=values["total_charges"],
        delivery_charge=values["delivery_charge"],
        discount=values["discount"],
        manual_discount=values["manual_discount"],
    )
    _check_grand_total(grand_total)

    values.update(
        type=order_type,
        status=INITIAL_STATUS,
        payment_status="unpaid",
        revision=0,
        total_quantity=total_quantity,
        grand_total=grand_total,
    )

    order = _insert_with_number(values, prefix)
    current_app.logger.info("Created %s order %s (id=%s)", order.type, order.order_number, order.id)
    return order


def validate_order_patch(patch: dict) -> None:
    """Input checks that do not depend on any particular order."""
    if not patch:
        raise ValidationError("Nothing to update")
    unknown = set(patch) - PATCH_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    if "status" in patch:
        validate_status(patch["status"])
    if "payment_status" in patch:
        validate_payment_status(patch["payment_status"])
    _check_references(patch)


def apply_order_patch(order: Order, patch: dict) -> StatusChange | None:
    """
    Apply a status/payment/assignment patch to a loaded order. Does not commit.

    Assignments and payment are applied first so a patch such as
    {"caterer_id": 3, "delivery_airport_id": 1, "status": "out_for_delivery"}
    is judged against the order as it will be stored.
    A delivery order already at a dispatch status cannot lose its caterer or
    airport through an assignment.
    """
    validate_order_patch(patch)
    for key in ("caterer_id", "delivery_airport_id"):
        if key in patch:
            setattr(order, key, patch[key])
    if "payment_status" in patch:
        apply_payment_status(order, patch["payment_status"])
    change = apply_status_change(order, patch["status"]) if "status" in patch else None
    if "caterer_id" in patch or "delivery_airport_id" in patch:
        check_delivery_associations(order)
    return change


def update_order(order_id: int, patch: dict) -> tuple[Order, StatusChange | None]:
    """
    Update an order's editable fields and, optionally, its status.

    Changing type away from delivery drops the delivery charge; changing it
    to delivery applies the default charge. manual_discount recomputes the
    grand total.
    """
    patch = dict(patch)
    unknown = set(patch) - UPDATE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    if "type" in patch:
        validate_order_type(patch["type"])
    validate_payment_type(patch.get("payment_type"))
    _check_references(patch)
    workflow_patch = {k: patch.pop(k) for k in list(patch) if k in PATCH_FIELDS}
    if workflow_patch:
        validate_order_patch(workflow_patch)

    def _op():
        order = get_order_for_update(order_id)
        fields = dict(patch)
        recompute = False

        new_type = fields.pop("type", order.type)
        type_changed = new_type != order.type
        if type_changed:
            order.delivery_charge = _default_delivery_charge(new_type)
            order.type = new_type
            recompute = True
        for field in ("manual_discount", "vendor_cost"):
            if field in fields:
                setattr(order, field, _money(fields.pop(field), field))
                recompute = recompute or field == "manual_discount"
        for key, value in fields.items():
            setattr(order, key, value)
        if recompute:
            _recompute_grand_total(order)

        change = apply_order_patch(order, workflow_patch) if workflow_patch else None
        if type_changed:
            check_delivery_associations(order)
        db.session.commit()
        return order, change

    try:
        order, change = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise
    if change:
        current_app.logger.info(
            "Order %s status %s -> %s", order.order_number, change.previous_status, change.new_status
        )
    return order, change


def duplicate_order(order_id: int, *, prefix: str | None = None) -> Order:
    """Copy an order's commercial fields into a new quote_pending, unpaid order."""
    original = get_order(order_id)
    if prefix is None:
        prefix = original.order_number[:2]
    values = {
        field: getattr(original, field)
        for field in TEXT_FIELDS | REFERENCE_FIELDS | {"payment_type", "total_quantity"}
    }
    for field in MONEY_FIELDS:
        values[field] = getattr(original, field)
    values.pop("payment_info", None)
    values.update(
        type=original.type,
        status=INITIAL_STATUS,
        payment_status="unpaid",
        revision=0,
    )
    order = _insert_with_number(values, normalize_prefix(prefix))
    current_app.logger.info("Duplicated order %s as %s", original.order_number, order.order_number)
    return order


def bump_revision(order_id: int) -> Order:
    """
    Record that the vendor-facing document was re-issued.

    Only delivery orders with an assigned caterer have a vendor document.
    """
    def _op():
        order = get_order_for_update(order_id)
        if order.type != "delivery" or order.caterer_id is None:
            raise PreconditionError(
                f"Order {order.order_number} has no caterer document to re-issue",
                details={"order_id": order.id, "type": order.type},
            )
        order.revision = (order.revision or 0) + 1
        db.session.commit()
        return order

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def list_orders(
    *,
    status: str | None = None,
    order_type: str | None = None,
    payment_status: str | None = None,
    stage: str | None = None,
    search: str | None = None,
    customer_id: int | None = None,
    caterer_id: int | None = None,
    limit: int = 200,
    offset: int = 0,
) -> list[Order]:
    q = db.session.query(Order)
    if status:
        validate_status(status)
        q = q.filter(Order.status == status)
    if order_type:
        validate_order_type(order_type)
        q = q.filter(Order.type == order_type)
    if payment_status:
        validate_payment_status(payment_status)
        q = q.filter(Order.payment_status == payment_status)
    if stage:
        if stage not in STAGE_STATUSES:
            raise ValidationError(f"Invalid stage '{stage}'. Must be one of: {', '.join(STAGE_STATUSES)}")
        q = q.filter(Order.status.in_(STAGE_STATUSES[stage]))
    if search:
        q = q.filter(Order.order_number.ilike(f"%{search.strip()}%"))
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    if caterer_id is not None:
        q = q.filter(Order.caterer_id == caterer_id)

    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    return q.offset(offset).limit(limit).all()


def status_counts(timeframe: str = "lifetime", *, now: datetime | None = None) -> dict[str, int]:
    """Count orders per status; month/week limit to orders created since N days ago."""
    if timeframe not in TIMEFRAME_DAYS:
        raise ValidationError(
            f"Invalid timeframe '{timeframe}'. Must be one of: {', '.join(TIMEFRAME_DAYS)}"
        )
    counts = {status: 0 for status in ORDER_STATUSES}

    q = db.session.query(Order.status, func.count(Order.id))
    days = TIMEFRAME_DAYS[timeframe]
    if days is not None:
        q = q.filter(Order.created_at >= start_of_day(now or utcnow(), days_back=days))
    for status, count in q.group_by(Order.status).all():
        counts[status] = int(count)
    return counts


def delete_order(order_id: int) -> None:
    """Administrative hard delete."""
    order = get_order(order_id)
    db.session.delete(order)
    db.session.commit()
    current_app.logger.info("Deleted order %s", order.order_number)


def bulk_delete_orders(order_ids: list[int]) -> int:
    """Administrative hard delete; unknown ids fail the whole call before any delete."""
    ids = sorted(set(order_ids))
    found = db.session.query(Order).filter(Order.id.in_(ids)).all()
    missing = set(ids) - {order.id for order in found}
    if missing:
        raise NotFoundError(
            f"Orders not found: {', '.join(str(i) for i in sorted(missing))}",
            details={"missing_ids": sorted(missing)},
        )
    for order in found:
        db.session.delete(order)
    db.session.commit()
    return len(found)
