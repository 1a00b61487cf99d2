# Overview: Service-layer operations for the order status workflow; the single chokepoint for status legality.

"""
Order Workflow

================================================================================
PURPOSE: Decide which status an order may move to, and apply the move
================================================================================

STATES:
    quote_pending (initial) -> quote_sent -> awaiting_vendor_quote
    -> awaiting_vendor_confirmation -> vendor_confirmed
    -> awaiting_client_confirmation -> client_confirmed -> out_for_delivery
    -> completed | cancelled_not_billable | cancelled_billable (terminal)

TRANSITION TABLE:
    (order_type, current_status) -> allowed next statuses

    The built-in table lets every non-terminal status move to any other
    status, for every order type. That is how the desk has always worked;
    type-specific restrictions are supplied per deployment through the
    ORDER_WORKFLOW_TRANSITIONS setting, which replaces the rows it names.
    Terminal states always map to the empty set, whatever the setting says.

RULES (checked in this order):
1. Target must be a known status.
2. Nothing leaves a terminal state (even a same-status write).
3. Same status is a no-op: no event is recorded.
4. Target must be in the table row for (order.type, order.status).
5. Delivery orders need a caterer and a delivery airport that both exist
   before out_for_delivery or completed, and keep needing them while they
   sit in either status (assignment and type edits are re-checked).
6. completed requires payment_status == 'paid' (REQUIRE_PAYMENT_FOR_COMPLETION).

Every applied transition appends an OrderStatusEvent in the same transaction.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from flask import current_app

from ..errors import NotFoundError, PreconditionError, ValidationError
from ..extensions import db
from ..models import Order
from ..models.orders import ORDER_STATUSES, ORDER_TYPES, TERMINAL_STATUSES
from . import status_event_service
from .concurrency import lock_for_update, run_with_retry
from .reference_data_service import airport_exists, caterer_exists


TransitionTable = Mapping[str, Mapping[str, frozenset]]

# Statuses that need a caterer and an airport on delivery orders
DISPATCH_STATUSES = frozenset({"out_for_delivery", "completed"})
ASSOCIATION_REQUIRED_TYPES = frozenset({"delivery"})

EXTENSION_KEY = "order_workflow"


@dataclass(frozen=True)
class StatusChange:
    """What the notification dispatcher needs to know about an applied transition."""
    order_id: int
    previous_status: str
    new_status: str

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
        }


def validate_status(status: str) -> None:
    if status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}"
        )


def validate_order_type(order_type: str) -> None:
    if order_type not in ORDER_TYPES:
        raise ValidationError(
            f"Invalid order type '{order_type}'. Must be one of: {', '.join(ORDER_TYPES)}"
        )


def _default_row() -> dict[str, frozenset]:
    row = {}
    for status in ORDER_STATUSES:
        if status in TERMINAL_STATUSES:
            row[status] = frozenset()
        else:
            row[status] = frozenset(s for s in ORDER_STATUSES if s != status)
    return row


def build_transition_table(overrides: Mapping | None = None) -> dict[str, dict[str, frozenset]]:
    """
    Build the (order_type, status) -> next statuses table.

    overrides: {order_type: {status: [next, ...]}}. Named rows replace the
    default row; unnamed rows keep it. Unknown types/statuses raise
    ValidationError so a bad setting fails at startup, not mid-request.
    """
    table = {order_type: _default_row() for order_type in ORDER_TYPES}
    if overrides is not None and not isinstance(overrides, Mapping):
        raise ValidationError("ORDER_WORKFLOW_TRANSITIONS must map order types to status rows")
    for order_type, rows in (overrides or {}).items():
        validate_order_type(order_type)
        if not isinstance(rows, Mapping):
            raise ValidationError(f"Workflow rows for '{order_type}' must map statuses to lists")
        for status, targets in rows.items():
            if isinstance(targets, str) or not isinstance(targets, (list, tuple, set, frozenset)):
                raise ValidationError(f"Next statuses for '{order_type}' / '{status}' must be a list")
            validate_status(status)
            for target in targets:
                validate_status(target)
            if status in TERMINAL_STATUSES:
                continue
            table[order_type][status] = frozenset(t for t in targets if t != status)
    return table


def init_workflow(app) -> None:
    """Build the transition table from app config and attach it to the app."""
    app.extensions[EXTENSION_KEY] = build_transition_table(
        app.config.get("ORDER_WORKFLOW_TRANSITIONS")
    )


def get_transition_table() -> TransitionTable:
    table = current_app.extensions.get(EXTENSION_KEY)
    if table is None:
        init_workflow(current_app)
        table = current_app.extensions[EXTENSION_KEY]
    return table


def allowed_next_statuses(order_type: str, current_status: str) -> frozenset:
    validate_order_type(order_type)
    validate_status(current_status)
    return get_transition_table()[order_type][current_status]


def next_allowed_states(order_type: str) -> frozenset:
    """Every status an order of this type can ever be moved into."""
    validate_order_type(order_type)
    targets: set[str] = set()
    for row_targets in get_transition_table()[order_type].values():
        targets |= row_targets
    return frozenset(targets)


def check_delivery_associations(order: Order, status: str | None = None) -> None:
    """
    Raise PreconditionError if a delivery order at (or moving to) a dispatch
    status lacks an existing caterer or delivery airport.

    status defaults to the order's current status.
    """
    status = order.status if status is None else status
    if order.type not in ASSOCIATION_REQUIRED_TYPES or status not in DISPATCH_STATUSES:
        return
    missing = []
    if not caterer_exists(order.caterer_id):
        missing.append("caterer")
    if not airport_exists(order.delivery_airport_id):
        missing.append("delivery airport")
    if missing:
        raise PreconditionError(
            f"Order {order.order_number} needs an assigned {' and '.join(missing)} "
            f"for '{status}'",
            details={"order_id": order.id, "missing": missing},
        )


def check_transition(order: Order, target_status: str) -> bool:
    """
    Raise PreconditionError unless order may move to target_status.

    Returns False for a same-status no-op, True for a real transition.
    """
    validate_status(target_status)

    if order.status in TERMINAL_STATUSES:
        raise PreconditionError(
            f"Order {order.order_number} is {order.status}; terminal orders cannot change status",
            details={"order_id": order.id, "status": order.status},
        )

    if target_status == order.status:
        return False

    if target_status not in allowed_next_statuses(order.type, order.status):
        raise PreconditionError(
            f"Cannot move {order.type} order {order.order_number} "
            f"from '{order.status}' to '{target_status}'",
            details={"order_id": order.id, "from": order.status, "to": target_status},
        )

    check_delivery_associations(order, target_status)

    if (
        target_status == "completed"
        and current_app.config.get("REQUIRE_PAYMENT_FOR_COMPLETION", True)
        and order.payment_status != "paid"
    ):
        raise PreconditionError(
            f"Order {order.order_number} can't be completed until it is paid",
            details={"order_id": order.id, "payment_status": order.payment_status},
        )

    return True


def apply_status_change(order: Order, target_status: str) -> StatusChange | None:
    """
    Check and apply a transition on an already-loaded (ideally locked) order.

    Does not commit. Returns None for a same-status no-op.
    """
    if not check_transition(order, target_status):
        return None

    previous = order.status
    order.status = target_status
    status_event_service.record_status_change(order, previous, target_status)
    return StatusChange(order_id=order.id, previous_status=previous, new_status=target_status)


def get_order_for_update(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def transition_order(order_id: int, target_status: str) -> tuple[Order, StatusChange | None]:
    """Move one order to target_status and commit."""
    def _op():
        order = get_order_for_update(order_id)
        change = apply_status_change(order, target_status)
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
