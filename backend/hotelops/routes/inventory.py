# backend/hotelops/routes/inventory.py
"""
Inventory routes: catalogue, scoped balances, restock and the movement log.

SECURITY:
- View operations require view_operations
- Catalogue, restock and adjust require mutate_inventory
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import handle_service_errors, require_capability
from ..services import stock_service
from ..services.directory_service import resolve_scope
from ..validation import as_int, json_body, require_fields


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/items")
@require_capability("mutate_inventory")
@handle_service_errors
def create_item_route():
    payload = json_body(request)
    require_fields(payload, "name")
    item = stock_service.create_item(
        payload["name"],
        payload.get("item_type", "inventoryItem"),
        sku=payload.get("sku"),
        unit_price_cents=as_int(payload.get("unit_price_cents", 0), "unit_price_cents"),
    )
    return jsonify(item.to_dict()), 201


@inventory_bp.get("/availability")
@require_capability("view_operations")
@handle_service_errors
def availability_route():
    """
    Query: item_type, item_id, scope ("BAR" or "BAR:pool"), quantity.

    Read-only; reports quantity minus reserved units.
    """
    args = request.args
    require_fields(args, "item_type", "item_id", "scope", "quantity")
    resolved = resolve_scope(args["scope"])
    availability = stock_service.get_ledger().check_availability(
        args["item_type"],
        as_int(args["item_id"], "item_id"),
        resolved.scope,
        as_int(args["quantity"], "quantity"),
    )
    return jsonify({**availability.to_dict(), "scope": resolved.code})


@inventory_bp.get("/balances")
@require_capability("view_operations")
@handle_service_errors
def balances_route():
    scope_code = request.args.get("scope")
    scope = resolve_scope(scope_code).scope if scope_code else None
    entries = stock_service.get_ledger().list_balances(
        scope=scope,
        item_id=as_int(request.args.get("item_id"), "item_id", required=False),
    )
    return jsonify({"balances": [e.to_dict() for e in entries]})


@inventory_bp.post("/restock")
@require_capability("mutate_inventory")
@handle_service_errors
def restock_route():
    """Body: {"scope", "item_id", "quantity", "reference" (optional)}"""
    payload = json_body(request)
    require_fields(payload, "scope", "item_id", "quantity")
    resolved = resolve_scope(payload["scope"])
    movement = stock_service.get_ledger().restock(
        resolved.scope,
        as_int(payload["item_id"], "item_id"),
        as_int(payload["quantity"], "quantity"),
        reference=payload.get("reference"),
        user_id=g.user_id,
    )
    return jsonify(movement.to_dict()), 201


@inventory_bp.post("/adjust")
@require_capability("mutate_inventory")
@handle_service_errors
def adjust_route():
    """Body: {"scope", "item_id", "delta", "reference" (optional)}"""
    payload = json_body(request)
    require_fields(payload, "scope", "item_id", "delta")
    resolved = resolve_scope(payload["scope"])
    movement = stock_service.get_ledger().adjust(
        resolved.scope,
        as_int(payload["item_id"], "item_id"),
        as_int(payload["delta"], "delta"),
        reference=payload.get("reference"),
        user_id=g.user_id,
    )
    return jsonify(movement.to_dict()), 201


@inventory_bp.get("/movements")
@require_capability("view_operations")
@handle_service_errors
def movements_route():
    scope_code = request.args.get("scope")
    movements = stock_service.get_ledger().list_movements(
        item_id=as_int(request.args.get("item_id"), "item_id", required=False),
        reference=request.args.get("reference"),
        scope=resolve_scope(scope_code).scope if scope_code else None,
        limit=as_int(request.args.get("limit"), "limit", required=False) or 100,
    )
    return jsonify({"movements": [m.to_dict() for m in movements]})
