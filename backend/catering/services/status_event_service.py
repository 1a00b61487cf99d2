# Overview: Outbox of applied status transitions for the notification dispatcher.

from __future__ import annotations

from ..extensions import db
from ..models import Order, OrderStatusEvent
from catering.time_utils import utcnow


def record_status_change(order: Order, previous_status: str, new_status: str) -> OrderStatusEvent:
    """
    Append an event for an applied transition. Does not commit.

    Must run in the same transaction as the status write so a rolled back
    transition never reaches the dispatcher.
    """
    ev = OrderStatusEvent(
        order_id=order.id,
        previous_status=previous_status,
        new_status=new_status,
        occurred_at=utcnow(),
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def pending_status_events(*, limit: int = 100, order_id: int | None = None) -> list[OrderStatusEvent]:
    q = db.session.query(OrderStatusEvent).filter(OrderStatusEvent.dispatched_at.is_(None))
    if order_id is not None:
        q = q.filter(OrderStatusEvent.order_id == order_id)
    return q.order_by(OrderStatusEvent.id.asc()).limit(limit).all()


def order_history(order_id: int) -> list[OrderStatusEvent]:
    return (
        db.session.query(OrderStatusEvent)
        .filter_by(order_id=order_id)
        .order_by(OrderStatusEvent.id.asc())
        .all()
    )


def mark_dispatched(event_ids: list[int]) -> int:
    """Stamp dispatched_at on the given events. Already dispatched ones are left alone."""
    if not event_ids:
        return 0
    count = (
        db.session.query(OrderStatusEvent)
        .filter(
            OrderStatusEvent.id.in_(event_ids),
            OrderStatusEvent.dispatched_at.is_(None),
        )
        .update({OrderStatusEvent.dispatched_at: utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return count
