# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/catering/routes/orders.py
"""
Order API routes.

Domain errors (ValidationError, NotFoundError, ConflictError,
PreconditionError) are turned into JSON responses by the handlers
registered in create_app().
"""
from flask import Blueprint, request

from ..errors import ValidationError
from ..models import Order
from ..services import bulk_order_service, order_service, status_event_service
from ..services import order_workflow_service, payment_status_service
from ..validation import ModelValidationPolicy, parse_id_list, validate_payload


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"type"} | order_service.CREATE_FIELDS,
    required_on_create={"type"},
    extra_fields={"prefix"},
)

ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(order_service.UPDATE_FIELDS),
)

ORDER_BULK_POLICY = ModelValidationPolicy(
    writable_fields=set(order_service.PATCH_FIELDS),
    extra_fields={"ids"},
)


def _status_change_dict(change):
    return change.to_dict() if change else None


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@orders_bp.post("/")
def create_order_route():
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Order, payload=payload, policy=ORDER_CREATE_POLICY, partial=False)
    order_type = patch.pop("type")
    prefix = patch.pop("prefix", None)
    order = order_service.create_order(order_type=order_type, prefix=prefix, **patch)
    return {"order": order.to_dict()}, 201


@orders_bp.get("/")
def list_orders_route():
    orders = order_service.list_orders(
        status=request.args.get("status"),
        order_type=request.args.get("type"),
        payment_status=request.args.get("payment_status"),
        stage=request.args.get("stage"),
        search=request.args.get("search"),
        limit=min(_int_arg("limit", 200), 1000),
        offset=_int_arg("offset", 0),
    )
    return {"orders": [o.to_dict() for o in orders]}, 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    order = order_service.get_order(order_id)
    return {"order": order.to_dict()}, 200


@orders_bp.patch("/<int:order_id>")
def update_order_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Order, payload=payload, policy=ORDER_UPDATE_POLICY, partial=True)
    order, change = order_service.update_order(order_id, patch)
    return {"order": order.to_dict(), "status_change": _status_change_dict(change)}, 200


@orders_bp.post("/<int:order_id>/status")
def transition_order_route(order_id: int):
    """Move an order to another workflow status."""
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        raise ValidationError("status required")
    order, change = order_workflow_service.transition_order(order_id, status)
    return {"order": order.to_dict(), "status_change": _status_change_dict(change)}, 200


@orders_bp.post("/<int:order_id>/payment-status")
def payment_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    payment_status = payload.get("payment_status")
    if not payment_status:
        raise ValidationError("payment_status required")
    order = payment_status_service.set_payment_status(order_id, payment_status)
    return {"order": order.to_dict()}, 200


@orders_bp.patch("/bulk/update")
def bulk_update_route():
    """
    Apply one patch to many orders.

    Always 200 once the patch itself is valid; rows that could not be
    updated are listed under "skipped" with their reason.
    """
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Order, payload=payload, policy=ORDER_BULK_POLICY, partial=True)
    ids = parse_id_list(patch.pop("ids", None))
    result = bulk_order_service.apply_bulk(ids, patch)
    return result.to_dict(), 200


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    order_service.delete_order(order_id)
    return {"deleted": [order_id]}, 200


@orders_bp.delete("/bulk/delete")
def bulk_delete_route():
    payload = request.get_json(silent=True) or {}
    ids = parse_id_list(payload.get("ids"))
    count = order_service.bulk_delete_orders(ids)
    return {"deleted_count": count}, 200


@orders_bp.post("/<int:order_id>/duplicate")
def duplicate_order_route(order_id: int):
    order = order_service.duplicate_order(order_id)
    return {"order": order.to_dict()}, 201


@orders_bp.post("/<int:order_id>/revision")
def bump_revision_route(order_id: int):
    order = order_service.bump_revision(order_id)
    return {"order": order.to_dict()}, 200


@orders_bp.get("/count/status")
def status_counts_route():
    timeframe = request.args.get("timeframe", "lifetime")
    return {"data": order_service.status_counts(timeframe)}, 200


@orders_bp.get("/workflow/<order_type>")
def workflow_route(order_type: str):
    table = order_workflow_service.get_transition_table()
    order_workflow_service.validate_order_type(order_type)
    return {
        "order_type": order_type,
        "allowed_statuses": sorted(order_workflow_service.next_allowed_states(order_type)),
        "transitions": {status: sorted(targets) for status, targets in table[order_type].items()},
    }, 200


@orders_bp.get("/<int:order_id>/history")
def order_history_route(order_id: int):
    order_service.get_order(order_id)
    events = status_event_service.order_history(order_id)
    return {"events": [e.to_dict() for e in events]}, 200


@orders_bp.get("/status-events")
def pending_status_events_route():
    events = status_event_service.pending_status_events(limit=min(_int_arg("limit", 100), 1000))
    return {"events": [e.to_dict() for e in events]}, 200


@orders_bp.post("/status-events/dispatched")
def mark_dispatched_route():
    payload = request.get_json(silent=True) or {}
    ids = parse_id_list(payload.get("ids"))
    return {"dispatched": status_event_service.mark_dispatched(ids)}, 200
