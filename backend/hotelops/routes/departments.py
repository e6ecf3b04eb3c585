# backend/hotelops/routes/departments.py
"""
Department directory, stats and audit trail routes.
"""
from flask import Blueprint, jsonify, request

from ..decorators import handle_service_errors, require_capability
from ..services import department_service, directory_service
from ..services.audit_service import list_audit_events
from ..errors import ValidationError
from ..time_utils import parse_iso_datetime
from ..validation import as_int, json_body, require_fields


departments_bp = Blueprint("departments", __name__, url_prefix="/api/departments")


@departments_bp.post("")
@require_capability("mutate_inventory")
@handle_service_errors
def create_department_route():
    payload = json_body(request)
    require_fields(payload, "code", "name")
    department = directory_service.create_department(
        payload["code"], payload["name"], payload.get("description")
    )
    return jsonify(department.to_dict()), 201


@departments_bp.get("")
@require_capability("view_operations")
@handle_service_errors
def list_departments_route():
    departments = directory_service.list_departments()
    return jsonify({
        "departments": [
            {**d.to_dict(), "sections": [s.to_dict() for s in d.sections]}
            for d in departments
        ]
    })


@departments_bp.post("/<code>/sections")
@require_capability("mutate_inventory")
@handle_service_errors
def create_section_route(code: str):
    payload = json_body(request)
    require_fields(payload, "name")
    section = directory_service.create_section(code, payload["name"], payload.get("slug"))
    return jsonify(section.to_dict()), 201


@departments_bp.get("/<code>/stats")
@require_capability("view_operations")
@handle_service_errors
def department_stats_route(code: str):
    """Stored stats; ?refresh=1 recomputes them first."""
    department = directory_service.get_department_by_code(code)
    if request.args.get("refresh") in ("1", "true"):
        department_service.refresh_department_stats(department.id)
    return jsonify({
        "department": department.code,
        "stats": department.stats,
        "sections": {s.slug: s.stats for s in department.sections},
    })


@departments_bp.get("/audit-events")
@require_capability("view_operations")
@handle_service_errors
def audit_events_route():
    """Query: entity_type, entity_id, category, since (ISO-8601), limit."""
    try:
        since = parse_iso_datetime(request.args.get("since"))
    except ValueError:
        raise ValidationError("since must be an ISO-8601 datetime")

    events = list_audit_events(
        entity_type=request.args.get("entity_type"),
        entity_id=as_int(request.args.get("entity_id"), "entity_id", required=False),
        event_category=request.args.get("category"),
        since=since,
        limit=as_int(request.args.get("limit"), "limit", required=False) or 100,
    )
    return jsonify({"events": [e.to_dict() for e in events]})
