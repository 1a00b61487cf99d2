# Overview: Payment status tracking, kept apart from the workflow status.

"""
payment_status is a free-form three-valued field:

    unpaid | payment_requested | paid

Any value may be set from any other (refunds and re-requests move it
backwards). The only coupling with the workflow is one-way: completing an
order requires 'paid' (see order_workflow_service).
"""

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Order
from ..models.orders import PAYMENT_STATUSES, PAYMENT_TYPES
from .concurrency import run_with_retry
from .order_workflow_service import get_order_for_update


def validate_payment_status(value: str) -> None:
    if value not in PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid payment status '{value}'. Must be one of: {', '.join(PAYMENT_STATUSES)}"
        )


def validate_payment_type(value: str | None) -> None:
    if value is not None and value not in PAYMENT_TYPES:
        raise ValidationError(
            f"Invalid payment type '{value}'. Must be one of: {', '.join(PAYMENT_TYPES)}"
        )


def apply_payment_status(order: Order, payment_status: str) -> str | None:
    """Set payment_status without committing; returns the previous value when it changed."""
    validate_payment_status(payment_status)
    previous = order.payment_status
    if previous == payment_status:
        return None
    order.payment_status = payment_status
    return previous


def set_payment_status(order_id: int, payment_status: str) -> Order:
    def _op():
        order = get_order_for_update(order_id)
        previous = apply_payment_status(order, payment_status)
        db.session.commit()
        return order, previous

    try:
        order, previous = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise
    if previous is not None:
        current_app.logger.info(
            "Order %s payment %s -> %s", order.order_number, previous, order.payment_status
        )
    return order
