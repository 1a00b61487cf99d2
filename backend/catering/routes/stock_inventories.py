# Overview: Flask API routes for stock inventory; parses input and returns JSON responses.

from flask import Blueprint, request

from ..errors import ValidationError
from ..models import StockInventory
from ..services import stock_inventory_service
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_restock,
    enforce_rules_stock_inventory,
    parse_id_list,
    validate_payload,
)


stock_inventories_bp = Blueprint("stock_inventories", __name__, url_prefix="/api/stock-inventories")

STOCK_WRITABLE_FIELDS = {"quantity", "unit_cost"} | stock_inventory_service.DESCRIPTIVE_FIELDS

STOCK_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=STOCK_WRITABLE_FIELDS,
    required_on_create={"name", "unit", "quantity", "unit_cost", "minimum_quantity"},
)

STOCK_UPDATE_POLICY = ModelValidationPolicy(writable_fields=STOCK_WRITABLE_FIELDS)

RESTOCK_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "unit_cost"},
    required_on_create={"quantity"},
)


def _bool_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    if raw not in ("true", "false"):
        raise ValidationError(f"{name} must be 'true' or 'false'")
    return raw == "true"


@stock_inventories_bp.get("/")
def list_stock_route():
    items = stock_inventory_service.list_stock_items(
        category=request.args.get("category"),
        is_active=_bool_arg("is_active"),
        search=request.args.get("search"),
        below_minimum=bool(_bool_arg("below_minimum")),
    )
    return {"items": [i.to_dict() for i in items]}, 200


@stock_inventories_bp.get("/<int:item_id>")
def get_stock_route(item_id: int):
    return {"item": stock_inventory_service.get_stock_item(item_id).to_dict()}, 200


@stock_inventories_bp.post("/")
def create_stock_route():
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=StockInventory, payload=payload, policy=STOCK_CREATE_POLICY, partial=False)
    enforce_rules_stock_inventory(patch)
    item = stock_inventory_service.create_stock_item(**patch)
    return {"item": item.to_dict()}, 201


@stock_inventories_bp.put("/<int:item_id>")
def update_stock_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=StockInventory, payload=payload, policy=STOCK_UPDATE_POLICY, partial=True)
    enforce_rules_stock_inventory(patch)
    item = stock_inventory_service.update_stock_item(item_id, patch)
    return {"item": item.to_dict()}, 200


@stock_inventories_bp.patch("/<int:item_id>/add-quantity")
def restock_route(item_id: int):
    """Add stock; unit_cost > 0 blends the cost by weighted average."""
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=StockInventory, payload=payload, policy=RESTOCK_POLICY, partial=False)
    enforce_rules_restock(patch)
    item = stock_inventory_service.restock_stock_item(
        item_id, quantity=patch["quantity"], unit_cost=patch.get("unit_cost")
    )
    return {"item": item.to_dict()}, 200


@stock_inventories_bp.delete("/<int:item_id>")
def delete_stock_route(item_id: int):
    stock_inventory_service.delete_stock_item(item_id)
    return {"deleted": [item_id]}, 200


@stock_inventories_bp.delete("/bulk/delete")
def bulk_delete_stock_route():
    payload = request.get_json(silent=True) or {}
    ids = parse_id_list(payload.get("ids"))
    return {"deleted_count": stock_inventory_service.bulk_delete_stock_items(ids)}, 200
