# backend/hotelops/routes/extras.py
"""
Extras routes: catalogue, allocation to scopes, usage and section summaries.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import handle_service_errors, require_capability
from ..services import extras_service
from ..services.directory_service import resolve_scope
from ..validation import as_bool, as_int, json_body, require_fields


extras_bp = Blueprint("extras", __name__, url_prefix="/api/extras")


@extras_bp.post("")
@require_capability("mutate_inventory")
@handle_service_errors
def create_extra_route():
    payload = json_body(request)
    require_fields(payload, "name")
    extra = extras_service.create_extra(
        payload["name"],
        track_inventory=as_bool(payload.get("track_inventory")),
        unit=payload.get("unit", "unit"),
        price_cents=as_int(payload.get("price_cents", 0), "price_cents"),
        inventory_item_id=as_int(payload.get("inventory_item_id"), "inventory_item_id", required=False),
    )
    return jsonify(extra.to_dict()), 201


@extras_bp.post("/<int:extra_id>/allocate")
@require_capability("mutate_inventory")
@handle_service_errors
def allocate_route(extra_id: int):
    """Body: {"scope": "BAR:pool", "quantity": int (ignored for untracked extras)}"""
    payload = json_body(request)
    require_fields(payload, "scope")
    result = extras_service.allocate_extra(
        payload["scope"],
        extra_id,
        as_int(payload.get("quantity", 1), "quantity"),
        user_id=g.user_id,
    )
    return jsonify(result), 201


@extras_bp.post("/<int:extra_id>/usage")
@require_capability("mutate_fulfillment")
@handle_service_errors
def usage_route(extra_id: int):
    payload = json_body(request)
    require_fields(payload, "scope", "quantity")
    result = extras_service.record_usage(
        payload["scope"],
        extra_id,
        as_int(payload["quantity"], "quantity"),
        user_id=g.user_id,
    )
    return jsonify(result)


@extras_bp.get("/<int:extra_id>/availability")
@require_capability("view_operations")
@handle_service_errors
def availability_route(extra_id: int):
    require_fields(request.args, "scope")
    resolved = resolve_scope(request.args["scope"])
    availability = extras_service.get_extras_ledger().check_availability(
        resolved.scope,
        extra_id,
        as_int(request.args.get("quantity", 1), "quantity"),
    )
    return jsonify({**availability.to_dict(), "scope": resolved.code})


@extras_bp.get("/summary")
@require_capability("view_operations")
@handle_service_errors
def summary_route():
    require_fields(request.args, "scope")
    resolved = resolve_scope(request.args["scope"])
    summary = extras_service.get_extras_ledger().section_summary(resolved.scope)
    return jsonify({**summary, "scope": resolved.code})
