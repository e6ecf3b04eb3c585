# backend/hotelops/routes/transfers.py
"""
Cross-department transfer API routes.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import handle_service_errors, require_capability
from ..services import transfer_service
from ..validation import as_int, json_body, require_fields


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.post("")
@require_capability("mutate_transfers")
@handle_service_errors
def create_transfer_route():
    """
    Create a pending transfer.

    Request body:
    {
        "from": "KITCHEN",
        "to": "BAR" | "BAR:pool",
        "items": [{"product_type": "drink", "product_id": 3, "quantity": 6}],
        "notes": str (optional)
    }

    Returns:
        201: Transfer created
        400: Invalid request
        404: Department, section or product not found
    """
    payload = json_body(request)
    require_fields(payload, "from", "to", "items")

    transfer = transfer_service.create_transfer(
        payload["from"],
        payload["to"],
        payload["items"],
        user_id=g.user_id,
        notes=payload.get("notes"),
    )
    return jsonify(transfer_service.get_transfer_summary(transfer.id)), 201


@transfers_bp.get("")
@require_capability("view_operations")
@handle_service_errors
def list_transfers_route():
    transfers = transfer_service.list_transfers(
        department_code=request.args.get("department"),
        direction=request.args.get("direction"),
        status=request.args.get("status"),
        limit=as_int(request.args.get("limit"), "limit", required=False) or 100,
    )
    return jsonify({"transfers": [t.to_dict() for t in transfers]})


@transfers_bp.get("/<int:transfer_id>")
@require_capability("view_operations")
@handle_service_errors
def get_transfer_route(transfer_id: int):
    return jsonify(transfer_service.get_transfer_summary(transfer_id))


@transfers_bp.post("/<int:transfer_id>/mark-approved")
@require_capability("approve_transfers")
@handle_service_errors
def mark_approved_route(transfer_id: int):
    transfer = transfer_service.mark_approved(transfer_id, user_id=g.user_id)
    return jsonify(transfer.to_dict())


@transfers_bp.post("/<int:transfer_id>/approve")
@require_capability("approve_transfers")
@handle_service_errors
def approve_transfer_route(transfer_id: int):
    """
    Execute the transfer: move core stock, then extras.

    Returns:
        200: Completed (skipped_extras lists extras that could not move)
        400: Insufficient stock or transfer no longer open; nothing written
        404: Transfer not found
        503: Conflicts persisted through every retry
    """
    result = transfer_service.approve_transfer(transfer_id, user_id=g.user_id)
    body = result.to_dict()
    if not result.success:
        body["error"] = result.message
        return jsonify(body), 400
    return jsonify(body)
