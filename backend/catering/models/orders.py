from __future__ import annotations

from ..extensions import db
from catering.money_utils import format_money
from catering.time_utils import to_utc_z


# Lifecycle vocabulary (the transition rules live in order_workflow_service)
ORDER_STATUSES = (
    "quote_pending",
    "quote_sent",
    "awaiting_vendor_quote",
    "awaiting_vendor_confirmation",
    "vendor_confirmed",
    "awaiting_client_confirmation",
    "client_confirmed",
    "out_for_delivery",
    "completed",
    "cancelled_not_billable",
    "cancelled_billable",
)
INITIAL_STATUS = "quote_pending"
TERMINAL_STATUSES = frozenset({"completed", "cancelled_not_billable", "cancelled_billable"})

ORDER_TYPES = ("dine_in", "delivery", "pickup", "qe_serv_hub")
PAYMENT_STATUSES = ("unpaid", "payment_requested", "paid")
PAYMENT_TYPES = ("card", "ach", "paypal", "stripe")

MONEY_FIELDS = (
    "total",
    "total_tax",
    "total_charges",
    "discount",
    "manual_discount",
    "delivery_charge",
    "grand_total",
    "vendor_cost",
)


def _money_column():
    return db.Column(db.Numeric(12, 2), nullable=False, default=0)


class Order(db.Model):
    """
    Catering order (quote -> vendor confirmation -> delivery).

    order_number is allocated once at creation (see order_number_service) and
    never rewritten. status follows the workflow table; payment_status is an
    independent field.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_type_status", "type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "KA00042")
    order_number = db.Column(db.String(32), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(32), nullable=False, default=INITIAL_STATUS, index=True)

    payment_status = db.Column(db.String(24), nullable=False, default="unpaid", index=True)
    payment_type = db.Column(db.String(16), nullable=True)
    payment_info = db.Column(db.Text, nullable=True)

    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    total = _money_column()
    total_tax = _money_column()
    total_charges = _money_column()
    discount = _money_column()
    manual_discount = _money_column()
    delivery_charge = _money_column()
    grand_total = _money_column()
    vendor_cost = _money_column()

    # Re-issue counter for vendor/client facing documents
    revision = db.Column(db.Integer, nullable=False, default=0)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    caterer_id = db.Column(db.Integer, db.ForeignKey("caterers.id"), nullable=True, index=True)
    delivery_airport_id = db.Column(db.Integer, db.ForeignKey("airports.id"), nullable=True, index=True)

    customer_note = db.Column(db.Text, nullable=True)
    note = db.Column(db.Text, nullable=True)
    packaging_note = db.Column(db.Text, nullable=True)
    dietary_res = db.Column(db.Text, nullable=True)
    reheat_method = db.Column(db.String(255), nullable=True)
    tail_number = db.Column(db.String(32), nullable=True)
    delivery_date = db.Column(db.String(32), nullable=True)
    delivery_time = db.Column(db.String(32), nullable=True)
    priority = db.Column(db.String(32), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    caterer = db.relationship("Caterer", backref=db.backref("orders", lazy=True))
    delivery_airport = db.relationship("Airport", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} type={self.type} status={self.status}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "type": self.type,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_type": self.payment_type,
            "total_quantity": self.total_quantity,
            "revision": self.revision,
            "customer_id": self.customer_id,
            "caterer_id": self.caterer_id,
            "delivery_airport_id": self.delivery_airport_id,
            "customer_note": self.customer_note,
            "note": self.note,
            "packaging_note": self.packaging_note,
            "dietary_res": self.dietary_res,
            "reheat_method": self.reheat_method,
            "tail_number": self.tail_number,
            "delivery_date": self.delivery_date,
            "delivery_time": self.delivery_time,
            "priority": self.priority,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        for field in MONEY_FIELDS:
            data[field] = format_money(getattr(self, field))
        return data


class OrderNumberSequence(db.Model):
    """
    One counter row per order-number prefix.

    Allocation increments next_number with a single UPDATE inside the same
    transaction as the order insert, so the row lock serializes allocators.
    """
    __tablename__ = "order_number_sequences"
    __table_args__ = (
        db.UniqueConstraint("prefix", name="uq_order_number_sequences_prefix"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(2), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prefix": self.prefix,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderStatusEvent(db.Model):
    """
    Append-only record of applied status transitions.

    Written in the same DB transaction as the status change; the notification
    dispatcher reads undispatched rows and stamps dispatched_at.
    """
    __tablename__ = "order_status_events"
    __table_args__ = (
        db.Index("ix_order_status_events_pending", "dispatched_at", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    previous_status = db.Column(db.String(32), nullable=False)
    new_status = db.Column(db.String(32), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship(
        "Order",
        backref=db.backref("status_events", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "occurred_at": to_utc_z(self.occurred_at),
            "dispatched_at": to_utc_z(self.dispatched_at),
        }
