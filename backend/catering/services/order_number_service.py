# Overview: Atomic allocation of human-readable order numbers (e.g., KA00042).

"""
Order numbering

FORMAT: two uppercase letters + at least five digits, zero padded
(KA00001 ... KA99999, then KA100000 and up).

ALLOCATION:
- One OrderNumberSequence row per prefix holds the next number.
- allocate_order_number() increments it with a single UPDATE inside the
  caller's transaction. The UPDATE takes the row's write lock, so concurrent
  allocators queue behind each other until the order insert commits.
- The first allocation for a prefix seeds the counter from the highest
  existing order number with that prefix (orders imported before the counter
  existed keep their numbers).
- The unique constraint on orders.order_number remains the last line of
  defence. order_service retries a colliding insert after resync_sequence()
  moves the counter past the highest number already taken.

allocate_order_number() never commits; the caller commits it together with
the order row, or rolls both back.
"""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import Order, OrderNumberSequence


ORDER_NUMBER_RE = re.compile(r"^[A-Z]{2}\d{5,}$")
MIN_DIGITS = 5


def normalize_prefix(prefix: str | None) -> str:
    """
    Uppercase, truncate to two characters, right-pad with 'A'.

    Anything other than ASCII letters is rejected.
    """
    raw = "" if prefix is None else str(prefix).strip()
    normalized = raw.upper()[:2].ljust(2, "A")
    if not re.fullmatch(r"[A-Z]{2}", normalized):
        raise ValidationError(f"Invalid order number prefix '{prefix}': letters only")
    return normalized


def format_order_number(prefix: str, number: int) -> str:
    return f"{prefix}{number:0{MIN_DIGITS}d}"


def parse_suffix(order_number: str, prefix: str) -> int | None:
    """Numeric part of order_number when it is prefix + digits, else None."""
    match = re.fullmatch(rf"{re.escape(prefix)}(\d+)", order_number or "")
    return int(match.group(1)) if match else None


def is_valid_order_number(order_number: str) -> bool:
    return bool(ORDER_NUMBER_RE.match(order_number or ""))


def max_existing_suffix(prefix: str) -> int:
    """Highest numeric suffix among stored orders with this prefix (0 if none)."""
    rows = (
        db.session.query(Order.order_number)
        .filter(Order.order_number.like(f"{prefix}%"))
        .all()
    )
    numbers = [parse_suffix(row.order_number, prefix) for row in rows]
    return max((n for n in numbers if n), default=0)


def _read_next_number(prefix: str) -> int:
    return (
        db.session.query(OrderNumberSequence.next_number)
        .filter_by(prefix=prefix)
        .scalar()
    )


def _increment(prefix: str) -> int | None:
    stmt = (
        update(OrderNumberSequence)
        .where(OrderNumberSequence.prefix == prefix)
        .values(next_number=OrderNumberSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    db.session.flush()
    return _read_next_number(prefix) - 1


def allocate_order_number(prefix: str | None = None) -> str:
    """
    Reserve the next order number for prefix within the current transaction.

    Uses the counter row lock on (prefix) to prevent two allocators from
    reading the same value.
    """
    prefix = normalize_prefix(prefix if prefix is not None else current_app.config["ORDER_NUMBER_PREFIX"])

    number = _increment(prefix)
    if number is None:
        seed = max_existing_suffix(prefix) + 1
        seq = OrderNumberSequence(prefix=prefix, next_number=seed + 1)
        db.session.add(seq)
        try:
            db.session.flush()
            number = seed
        except IntegrityError:
            # Another allocator created the counter row first
            db.session.rollback()
            number = _increment(prefix)
            if number is None:
                raise

    return format_order_number(prefix, number)


def resync_sequence(prefix: str) -> int:
    """
    Move the counter past every number already used by an order.

    Returns the counter's next_number afterwards. Commits.
    """
    prefix = normalize_prefix(prefix)
    floor = max_existing_suffix(prefix) + 1
    stmt = (
        update(OrderNumberSequence)
        .where(
            OrderNumberSequence.prefix == prefix,
            OrderNumberSequence.next_number < floor,
        )
        .values(next_number=floor)
    )
    result = db.session.execute(stmt)
    db.session.commit()
    if result.rowcount:
        current_app.logger.warning("Order number counter for %s resynced to %d", prefix, floor)
    return _read_next_number(prefix) or floor


def peek_next_order_number(prefix: str | None = None) -> str:
    """The number the next allocation would most likely return. Does not reserve it."""
    prefix = normalize_prefix(prefix if prefix is not None else current_app.config["ORDER_NUMBER_PREFIX"])
    counter = _read_next_number(prefix) or 1
    return format_order_number(prefix, max(counter, max_existing_suffix(prefix) + 1))
