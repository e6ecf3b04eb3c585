# backend/hotelops/routes/orders.py
"""
Order entry, fulfillment and reservation routes.

SECURITY: every route requires a capability.
- Reads require view_operations
- Order entry and lifecycle require mutate_orders
- Line fulfillment requires mutate_fulfillment
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import handle_service_errors, require_capability
from ..extensions import db
from ..services import fulfillment_service, order_service
from ..services.directory_service import resolve_scope
from ..services.reservation_service import get_tracker
from ..validation import as_int, json_body, require_fields


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_capability("mutate_orders")
@handle_service_errors
def create_order_route():
    """
    Create an order with its lines.

    Request body:
    {
        "customer_ref": str (optional),
        "items": [{"product_id", "product_type", "department_code", "quantity",
                   "unit_price_cents" (optional for stock items), "product_name" (optional)}],
        "discount_total_cents": int (optional),
        "tax_cents": int (optional),
        "notes": str (optional)
    }
    """
    payload = json_body(request)
    require_fields(payload, "items")

    order = order_service.create_order(
        payload.get("customer_ref"),
        payload["items"],
        discount_total=as_int(payload.get("discount_total_cents", 0), "discount_total_cents"),
        tax=as_int(payload.get("tax_cents", 0), "tax_cents"),
        notes=payload.get("notes"),
        user_id=g.user_id,
    )
    return jsonify(order_service.get_order_summary(order.id)), 201


@orders_bp.get("")
@require_capability("view_operations")
@handle_service_errors
def list_orders_route():
    orders, total = order_service.list_orders(
        status=request.args.get("status"),
        department_code=request.args.get("department"),
        limit=as_int(request.args.get("limit"), "limit", required=False) or 100,
        offset=as_int(request.args.get("offset"), "offset", required=False) or 0,
    )
    return jsonify({"orders": [o.to_dict() for o in orders], "total": total})


@orders_bp.get("/<int:order_id>")
@require_capability("view_operations")
@handle_service_errors
def get_order_route(order_id: int):
    return jsonify(order_service.get_order_summary(order_id))


@orders_bp.post("/<int:order_id>/lines")
@require_capability("mutate_orders")
@handle_service_errors
def add_line_route(order_id: int):
    line = order_service.add_line(order_id, json_body(request), user_id=g.user_id)
    return jsonify(line.to_dict()), 201


@orders_bp.patch("/<int:order_id>/lines/<int:line_id>")
@require_capability("mutate_orders")
@handle_service_errors
def update_line_route(order_id: int, line_id: int):
    payload = json_body(request)
    line = order_service.update_line_quantity(
        order_id,
        line_id,
        as_int(payload.get("quantity"), "quantity"),
        user_id=g.user_id,
    )
    return jsonify(line.to_dict())


@orders_bp.delete("/<int:order_id>/lines/<int:line_id>")
@require_capability("mutate_orders")
@handle_service_errors
def remove_line_route(order_id: int, line_id: int):
    order = order_service.remove_line(order_id, line_id, user_id=g.user_id)
    return jsonify(order_service.get_order_summary(order.id))


@orders_bp.post("/<int:order_id>/discount")
@require_capability("mutate_orders")
@handle_service_errors
def apply_discount_route(order_id: int):
    payload = json_body(request)
    order = order_service.apply_discount(
        order_id,
        as_int(payload.get("discount_total_cents"), "discount_total_cents"),
        user_id=g.user_id,
    )
    return jsonify(order.to_dict())


@orders_bp.post("/<int:order_id>/cancel")
@require_capability("mutate_orders")
@handle_service_errors
def cancel_order_route(order_id: int):
    payload = json_body(request)
    order = order_service.cancel_order(order_id, payload.get("reason"), user_id=g.user_id)
    return jsonify(order.to_dict())


@orders_bp.post("/<int:order_id>/refund")
@require_capability("mutate_orders")
@handle_service_errors
def refund_order_route(order_id: int):
    payload = json_body(request)
    order = order_service.refund_order(order_id, payload.get("reason"), user_id=g.user_id)
    return jsonify(order.to_dict())


@orders_bp.post("/<int:order_id>/complete")
@require_capability("mutate_orders")
@handle_service_errors
def complete_order_route(order_id: int):
    order = order_service.complete_order(order_id, user_id=g.user_id)
    return jsonify(order.to_dict())


# =============================================================================
# Fulfillment
# =============================================================================

@orders_bp.put("/<int:order_id>/fulfillment")
@require_capability("mutate_fulfillment")
@handle_service_errors
def update_fulfillment_route(order_id: int):
    """
    Move one line to processing or fulfilled.

    Request body:
    {
        "line_id": int,
        "status": "processing" | "fulfilled",
        "fulfilled_quantity": int (optional),
        "notes": str (optional)
    }

    Returns:
        200: Order with lines, fulfillment records and summary
        400: Invalid status/transition, quantity or insufficient stock
        404: Order or line not found
        409: Concurrent modification
    """
    payload = json_body(request)
    require_fields(payload, "line_id", "status")

    fulfillment_service.update_fulfillment(
        order_id,
        as_int(payload["line_id"], "line_id"),
        payload["status"],
        fulfilled_quantity=as_int(payload.get("fulfilled_quantity"), "fulfilled_quantity", required=False),
        notes=payload.get("notes"),
        user_id=g.user_id,
    )
    return jsonify(order_service.get_order_summary(order_id))


@orders_bp.get("/<int:order_id>/fulfillment")
@require_capability("view_operations")
@handle_service_errors
def get_fulfillment_route(order_id: int):
    summary = order_service.get_order_summary(order_id)
    return jsonify({
        "order_id": summary["id"],
        "order_number": summary["order_number"],
        "status": summary["status"],
        "summary": summary["summary"],
        "lines": summary["lines"],
    })


# =============================================================================
# Reservations
# =============================================================================

@orders_bp.get("/<int:order_id>/reservations")
@require_capability("view_operations")
@handle_service_errors
def list_reservations_route(order_id: int):
    order_service.get_order(order_id)
    reservations = get_tracker().list_for_order(order_id, status=request.args.get("status"))
    return jsonify({"reservations": [r.to_dict() for r in reservations]})


@orders_bp.post("/<int:order_id>/reservations")
@require_capability("mutate_orders")
@handle_service_errors
def reserve_route(order_id: int):
    """Body: {"item_id", "quantity", "scope": "BAR" | "BAR:pool", "line_id" (optional)}"""
    payload = json_body(request)
    require_fields(payload, "item_id", "quantity", "scope")

    order = order_service.get_order(order_id)
    resolved = resolve_scope(payload["scope"])
    reservation = get_tracker().reserve(
        order.id,
        as_int(payload["item_id"], "item_id"),
        as_int(payload["quantity"], "quantity"),
        resolved.scope,
        order_line_id=as_int(payload.get("line_id"), "line_id", required=False),
    )
    db.session.commit()
    return jsonify(reservation.to_dict()), 201


@orders_bp.post("/<int:order_id>/reservations/consume")
@require_capability("mutate_fulfillment")
@handle_service_errors
def consume_route(order_id: int):
    payload = json_body(request)
    require_fields(payload, "item_id")

    order = order_service.get_order(order_id)
    units = get_tracker().consume(
        order.id,
        as_int(payload["item_id"], "item_id"),
        order_line_id=as_int(payload.get("line_id"), "line_id", required=False),
    )
    db.session.commit()
    return jsonify({"order_id": order_id, "consumed": units})


@orders_bp.post("/<int:order_id>/reservations/release")
@require_capability("mutate_orders")
@handle_service_errors
def release_route(order_id: int):
    payload = json_body(request)

    order = order_service.get_order(order_id)
    units = get_tracker().release(
        order.id,
        item_id=as_int(payload.get("item_id"), "item_id", required=False),
        order_line_id=as_int(payload.get("line_id"), "line_id", required=False),
    )
    db.session.commit()
    return jsonify({"order_id": order_id, "released": units})
