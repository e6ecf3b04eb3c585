# Overview: Service-layer operations for order entry and order lifecycle.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, Order, OrderDepartment, OrderLine
from ..errors import NotFoundError, ValidationError
from ..concurrency import bounded_transaction, lock_for_update
from ..pricing import line_total, price_order, require_cents
from ..scope import Scope
from .audit_service import append_audit_event
from .directory_service import resolve_scope
from .document_service import next_order_number
from .reservation_service import get_tracker
from .rollup_service import apply_rollup, derive_order_status, summarize_lines
from .stock_service import inventory_backed_types
"""
Order invariants

- total = subtotal - discount_total + tax >= 0; subtotal = sum of line totals.
- Lines are only added, edited or removed while the order is pending and
  the line itself is pending.
- Inventory-backed lines hold a reservation at their consumption scope from
  entry until fulfillment (consumed) or cancellation / removal (released).
- cancelled and refunded are terminal; orders are never deleted.
"""

TERMINAL_ORDER_STATUSES = ("cancelled", "refunded")


def _tx_timeout() -> float:
    return current_app.config["ORDER_TX_TIMEOUT_SECONDS"]


def _positive_int(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{label} must be a positive integer")
    return value


def get_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _get_line(order: Order, line_id: int) -> OrderLine:
    line = db.session.query(OrderLine).filter_by(id=line_id).first()
    if not line or line.order_id != order.id:
        raise NotFoundError(f"Line {line_id} not found on order {order.order_number}")
    return line


def _require_editable(order: Order):
    if order.status != "pending":
        raise ValidationError(f"Order {order.order_number} is {order.status}; lines can only change while pending")


def _ensure_order_department(order: Order, department_id: int):
    exists = (
        db.session.query(OrderDepartment)
        .filter_by(order_id=order.id, department_id=department_id)
        .first()
    )
    if not exists:
        db.session.add(OrderDepartment(order_id=order.id, department_id=department_id, status="pending"))


def _build_line(order: Order, item: dict, tracker) -> OrderLine:
    if not isinstance(item, dict):
        raise ValidationError("Each order item must be an object")

    product_type = item.get("product_type")
    if not product_type or not isinstance(product_type, str):
        raise ValidationError("product_type is required")
    product_id = _positive_int(item.get("product_id"), "product_id")
    quantity = _positive_int(item.get("quantity"), "quantity")

    resolved = resolve_scope(item.get("department_code"))
    backed = product_type in inventory_backed_types()

    name = item.get("product_name")
    unit_price = item.get("unit_price_cents")
    if backed:
        stock_item = db.session.get(InventoryItem, product_id)
        if not stock_item:
            raise NotFoundError(f"Item {product_id} not found")
        name = name or stock_item.name
        if unit_price is None:
            unit_price = stock_item.unit_price_cents
    if not name:
        raise ValidationError("product_name is required")
    unit_price = require_cents(unit_price, "unit_price_cents")

    line = OrderLine(
        order_id=order.id,
        line_number=order.next_line_number,
        product_id=product_id,
        product_type=product_type,
        product_name=name,
        department_id=resolved.department.id,
        department_code=resolved.department.code,
        section_id=resolved.scope.section_id,
        quantity=quantity,
        unit_price_cents=unit_price,
        line_total_cents=line_total(quantity, unit_price),
        status="pending",
    )
    order.next_line_number = order.next_line_number + 1
    db.session.add(line)
    db.session.flush()

    _ensure_order_department(order, resolved.department.id)
    if backed:
        tracker.reserve(order.id, product_id, quantity, resolved.scope, order_line_id=line.id)
    return line


def create_order(
    customer_ref: str | None,
    items: list[dict],
    discount_total: int = 0,
    tax: int = 0,
    notes: str | None = None,
    *,
    user_id: int | None = None,
    tracker=None,
) -> Order:
    """
    Number the order, create its lines and department links, and reserve stock
    for inventory-backed lines, all in one transaction. A reservation that
    cannot be satisfied aborts the whole order.
    """
    if not items:
        raise ValidationError("An order needs at least one line")
    require_cents(discount_total, "discount_total")
    require_cents(tax, "tax")
    tracker = tracker or get_tracker()

    with bounded_transaction(_tx_timeout()):
        order = Order(
            order_number=next_order_number(),
            customer_ref=customer_ref,
            status="pending",
            payment_status="unpaid",
            discount_total_cents=discount_total,
            tax_cents=tax,
            notes=notes,
            created_by_user_id=user_id,
            next_line_number=1,
        )
        db.session.add(order)
        db.session.flush()

        for item in items:
            _build_line(order, item, tracker)

        db.session.flush()
        db.session.refresh(order, ["lines"])
        apply_rollup(order, order.lines)
        append_audit_event(
            event_type="order.created",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
            payload={"order_number": order.order_number, "lines": len(order.lines)},
        )

    return order


def add_line(order_id: int, item: dict, *, user_id: int | None = None, tracker=None) -> OrderLine:
    tracker = tracker or get_tracker()
    with bounded_transaction(_tx_timeout()):
        order = get_order(order_id, lock=True)
        _require_editable(order)
        line = _build_line(order, item, tracker)
        db.session.refresh(order, ["lines"])
        apply_rollup(order, order.lines)
        append_audit_event(
            event_type="order.line_added",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
            payload={"line_number": line.line_number, "product_id": line.product_id, "quantity": line.quantity},
        )
    return line


def update_line_quantity(order_id: int, line_id: int, quantity: int, *, user_id: int | None = None,
                         tracker=None) -> OrderLine:
    """Re-price the line and move its reservation to the new quantity."""
    quantity = _positive_int(quantity, "quantity")
    tracker = tracker or get_tracker()
    with bounded_transaction(_tx_timeout()):
        order = get_order(order_id, lock=True)
        _require_editable(order)
        line = _get_line(order, line_id)
        if line.status != "pending":
            raise ValidationError(f"Line {line.line_number} is {line.status} and can no longer change")

        previous = line.quantity
        if line.product_type in inventory_backed_types():
            tracker.release(order.id, line.product_id, order_line_id=line.id)
            tracker.reserve(
                order.id,
                line.product_id,
                quantity,
                Scope(line.department_id, line.section_id),
                order_line_id=line.id,
            )

        line.quantity = quantity
        line.line_total_cents = line_total(quantity, line.unit_price_cents)
        db.session.flush()
        apply_rollup(order, order.lines)
        append_audit_event(
            event_type="order.line_quantity_changed",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
            payload={"line_number": line.line_number, "from": previous, "to": quantity},
        )
    return line


def remove_line(order_id: int, line_id: int, *, user_id: int | None = None, tracker=None) -> Order:
    tracker = tracker or get_tracker()
    with bounded_transaction(_tx_timeout()):
        order = get_order(order_id, lock=True)
        _require_editable(order)
        line = _get_line(order, line_id)
        if line.status != "pending":
            raise ValidationError(f"Line {line.line_number} is {line.status} and can no longer be removed")

        remaining = [other for other in order.lines if other.id != line.id]
        if not remaining:
            raise ValidationError("An order needs at least one line; cancel the order instead")

        # Rejects a removal that would leave the discount above the subtotal.
        price_order(
            sum(other.line_total_cents for other in remaining),
            order.discount_total_cents or 0,
            order.tax_cents or 0,
        )

        tracker.release(order.id, order_line_id=line.id)
        for reservation in tracker.list_for_order(order.id):
            if reservation.order_line_id == line.id:
                reservation.order_line_id = None
        db.session.flush()

        if not any(other.department_id == line.department_id for other in remaining):
            db.session.query(OrderDepartment).filter_by(
                order_id=order.id, department_id=line.department_id
            ).delete(synchronize_session=False)

        line_number = line.line_number
        db.session.delete(line)
        db.session.flush()
        db.session.refresh(order, ["lines", "departments"])
        apply_rollup(order, order.lines)
        append_audit_event(
            event_type="order.line_removed",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
            payload={"line_number": line_number},
        )
    return order


def apply_discount(order_id: int, discount_total: int, *, user_id: int | None = None) -> Order:
    require_cents(discount_total, "discount_total")
    with bounded_transaction(_tx_timeout()):
        order = get_order(order_id, lock=True)
        if order.status in TERMINAL_ORDER_STATUSES or order.status == "completed":
            raise ValidationError(f"Cannot discount a {order.status} order")

        totals = price_order(order.subtotal_cents, discount_total, order.tax_cents or 0)
        order.discount_total_cents = totals.discount_total_cents
        order.total_cents = totals.total_cents
        append_audit_event(
            event_type="order.discount_applied",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
            payload={"discount_total_cents": discount_total},
        )
    return order


def _set_department_statuses(order: Order, status: str):
    for link in order.departments:
        if link.status != status:
            link.status = status


def cancel_order(order_id: int, reason: str | None = None, *, user_id: int | None = None,
                 tracker=None) -> Order:
    """Release every open reservation and close the order as cancelled."""
    tracker = tracker or get_tracker()
    with bounded_transaction(_tx_timeout()):
        order = get_order(order_id, lock=True)
        if order.status in TERMINAL_ORDER_STATUSES:
            raise ValidationError(f"Order {order.order_number} is already {order.status}")
        if order.status in ("fulfilled", "completed"):
            raise ValidationError(f"Order {order.order_number} is {order.status}; refund it instead")

        released = tracker.release(order.id)
        order.status = "cancelled"
        _set_department_statuses(order, "cancelled")
        append_audit_event(
            event_type="order.cancelled",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
            note=reason,
            payload={"released_units": released},
        )
    return order


def refund_order(order_id: int, reason: str | None = None, *, user_id: int | None = None,
                 tracker=None) -> Order:
    tracker = tracker or get_tracker()
    with bounded_transaction(_tx_timeout()):
        order = get_order(order_id, lock=True)
        if order.status in TERMINAL_ORDER_STATUSES:
            raise ValidationError(f"Order {order.order_number} is already {order.status}")

        tracker.release(order.id)
        order.status = "refunded"
        order.payment_status = "refunded"
        _set_department_statuses(order, "refunded")
        append_audit_event(
            event_type="order.refunded",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
            note=reason,
        )
    return order


def complete_order(order_id: int, *, user_id: int | None = None) -> Order:
    with bounded_transaction(_tx_timeout()):
        order = get_order(order_id, lock=True)
        if order.status != "fulfilled":
            raise ValidationError(f"Only fulfilled orders can be completed (order is {order.status})")

        order.status = "completed"
        _set_department_statuses(order, "completed")
        append_audit_event(
            event_type="order.completed",
            event_category="orders",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=user_id,
        )
    return order


def get_order_summary(order_id: int) -> dict:
    order = get_order(order_id)
    lines = list(order.lines)
    data = order.to_dict(include_lines=True)
    data["summary"] = summarize_lines(lines).to_dict()
    data["derived_status"] = derive_order_status(order.status, lines)
    return data


def list_orders(*, status: str | None = None, department_code: str | None = None,
                limit: int = 100, offset: int = 0) -> tuple[list[Order], int]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if department_code:
        department = resolve_scope(department_code).department
        query = query.join(OrderDepartment, OrderDepartment.order_id == Order.id).filter(
            OrderDepartment.department_id == department.id
        )

    total = query.count()
    limit = min(max(limit, 1), 500)
    offset = max(offset, 0)
    orders = query.order_by(Order.id.desc()).offset(offset).limit(limit).all()
    return orders, total
