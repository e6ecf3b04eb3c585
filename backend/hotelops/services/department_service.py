# Overview: Department status sync and derived order statistics.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Department, DepartmentSection, Order, OrderDepartment, OrderLine
from ..errors import NotFoundError
from hotelops.time_utils import to_utc_z, utcnow
from .rollup_service import derive_order_status


EXCLUDED_ORDER_STATUSES = ("cancelled", "refunded")


def _empty_stats() -> dict:
    return {
        "total_orders": 0,
        "pending_orders": 0,
        "processing_orders": 0,
        "fulfilled_orders": 0,
        "completed_orders": 0,
        "total_units": 0,
        "fulfilled_units": 0,
        "total_amount_cents": 0,
        "fulfillment_rate": 0,
    }


def _accumulate(stats: dict, order: Order, lines: list[OrderLine]):
    if not lines:
        return
    stats["total_orders"] += 1
    key = f"{order.status}_orders"
    if key in stats:
        stats[key] += 1
    stats["total_units"] += sum(line.quantity for line in lines)
    stats["fulfilled_units"] += sum(line.quantity for line in lines if line.status == "fulfilled")
    stats["total_amount_cents"] += sum(line.line_total_cents for line in lines)


def _finish(stats: dict) -> dict:
    if stats["total_units"]:
        stats["fulfillment_rate"] = round(stats["fulfilled_units"] * 100 / stats["total_units"])
    stats["updated_at"] = to_utc_z(utcnow())
    return stats


def recalculate_stats(department_id: int) -> dict:
    """
    Recompute order statistics for a department and each of its sections.

    Cancelled and refunded orders are left out. Stats are stored as JSON on
    the department / section rows and returned; nothing is committed here.
    """
    department = db.session.get(Department, department_id)
    if not department:
        raise NotFoundError(f"Department {department_id} not found")

    lines = (
        db.session.query(OrderLine, Order)
        .join(Order, Order.id == OrderLine.order_id)
        .filter(
            OrderLine.department_id == department_id,
            Order.status.notin_(EXCLUDED_ORDER_STATUSES),
        )
        .all()
    )

    by_order: dict[int, tuple[Order, list[OrderLine]]] = {}
    for line, order in lines:
        by_order.setdefault(order.id, (order, []))[1].append(line)

    department_stats = _empty_stats()
    section_stats: dict[int, dict] = {}
    for order, order_lines in by_order.values():
        _accumulate(department_stats, order, order_lines)
        per_section: dict[int, list[OrderLine]] = {}
        for line in order_lines:
            if line.section_id is not None:
                per_section.setdefault(line.section_id, []).append(line)
        for section_id, section_lines in per_section.items():
            _accumulate(section_stats.setdefault(section_id, _empty_stats()), order, section_lines)

    department.stats = _finish(department_stats)
    for section in db.session.query(DepartmentSection).filter_by(department_id=department_id).all():
        section.stats = _finish(section_stats.get(section.id, _empty_stats()))

    return department.stats


def sync_order_departments(order: Order) -> list[OrderDepartment]:
    """Mirror each department's share of the order onto its association row."""
    links = db.session.query(OrderDepartment).filter_by(order_id=order.id).all()
    for link in links:
        department_lines = [line for line in order.lines if line.department_id == link.department_id]
        if order.status in ("cancelled", "refunded", "completed"):
            status = order.status
        else:
            status = derive_order_status(link.status, department_lines)
        if link.status != status:
            link.status = status
    return links


def rollup_after_fulfillment(order_id: int) -> bool:
    """
    Post-commit, best-effort: sync department links and refresh stats for
    every department the order touches. A failure is logged and rolled back;
    the fulfillment that triggered it stays committed.
    """
    try:
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        sync_order_departments(order)
        for department_id in sorted({line.department_id for line in order.lines}):
            recalculate_stats(department_id)
        db.session.commit()
        return True
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Department roll-up failed for order %s", order_id, exc_info=True)
        return False


def refresh_department_stats(department_id: int) -> dict:
    stats = recalculate_stats(department_id)
    db.session.commit()
    return stats
