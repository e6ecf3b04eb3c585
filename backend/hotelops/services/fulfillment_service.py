# Overview: Line fulfillment state machine with atomic stock decrement.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import FulfillmentRecord, Order, OrderLine
from ..errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..concurrency import bounded_transaction, lock_for_update
from ..scope import Scope
from hotelops.time_utils import utcnow
from .audit_service import append_audit_event
from .department_service import rollup_after_fulfillment
from .reservation_service import get_tracker
from .rollup_service import apply_rollup
from .stock_service import MOVEMENT_OUT, get_ledger, inventory_backed_types
"""
Fulfillment invariants (authoritative)

- Line status only moves forward: pending -> processing -> fulfilled, or
  pending -> fulfilled. fulfilled is terminal; repeating the current state
  is rejected.
- The line's status always equals the status of its latest FulfillmentRecord.
- A record's fulfilled_quantity is the number of units handed over in that
  transition; the sum over a line never exceeds the line quantity.
- For inventory-backed lines the stock decrement, reservation consumption,
  line status and record commit together or not at all.
- Nothing here retries; conflicts surface as ConcurrencyConflictError.
"""

LINE_STATUS_RANK = {"pending": 0, "processing": 1, "fulfilled": 2}
TARGET_STATUSES = ("processing", "fulfilled")
BLOCKED_ORDER_STATUSES = ("cancelled", "refunded")


def validate_transition(current: str, new_status: str):
    if new_status not in TARGET_STATUSES:
        raise ValidationError(
            f"Invalid fulfillment status: {new_status}",
            {"allowed": list(TARGET_STATUSES)},
        )
    if LINE_STATUS_RANK.get(new_status, -1) <= LINE_STATUS_RANK.get(current, -1):
        raise InvalidTransitionError(
            f"Cannot move line from {current} to {new_status}",
            {"from": current, "to": new_status},
        )


def resolve_fulfilled_quantity(line: OrderLine, new_status: str, requested, delivered: int) -> int:
    remaining = line.quantity - delivered
    if requested is None:
        return remaining if new_status == "fulfilled" else 0

    if isinstance(requested, bool) or not isinstance(requested, int):
        raise ValidationError("fulfilled_quantity must be an integer")
    if requested == 0 and new_status == "fulfilled":
        # Closing a line hands over whatever is still outstanding
        return remaining
    if requested < 0:
        raise ValidationError("fulfilled_quantity cannot be negative")
    if requested > remaining:
        raise ValidationError(
            f"fulfilled_quantity {requested} exceeds remaining quantity {remaining}",
            {"line_quantity": line.quantity, "delivered": delivered, "requested": requested},
        )
    return requested


def update_fulfillment(
    order_id: int,
    line_id: int,
    new_status: str,
    fulfilled_quantity: int | None = None,
    notes: str | None = None,
    *,
    user_id: int | None = None,
    ledger=None,
    tracker=None,
) -> Order:
    """
    Move one order line forward and record the transition.

    Fulfilling an inventory-backed line decrements stock at the line's
    department/section for every unit delivered on the line and consumes its
    reservations in the same transaction. The order status roll-up is part of
    that transaction; department links and stats follow after commit.
    """
    ledger = ledger or get_ledger()
    tracker = tracker or get_tracker()

    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    if order.status in BLOCKED_ORDER_STATUSES:
        raise ValidationError(f"Order {order.order_number} is {order.status}")

    line = db.session.get(OrderLine, line_id)
    if not line or line.order_id != order.id:
        raise NotFoundError(f"Line {line_id} not found on order {order.order_number}")
    validate_transition(line.status, new_status)

    try:
        with bounded_transaction(current_app.config["FULFILLMENT_TX_TIMEOUT_SECONDS"]):
            line = (
                lock_for_update(db.session.query(OrderLine).filter_by(id=line_id))
                .populate_existing()
                .one()
            )
            # Re-check under the lock; another writer may have moved the line.
            validate_transition(line.status, new_status)

            delivered = line.delivered_quantity
            quantity = resolve_fulfilled_quantity(line, new_status, fulfilled_quantity, delivered)

            line.status = new_status
            db.session.add(
                FulfillmentRecord(
                    order_id=order.id,
                    order_line_id=line.id,
                    status=new_status,
                    fulfilled_quantity=quantity,
                    notes=notes,
                    fulfilled_at=utcnow() if new_status == "fulfilled" else None,
                    actor_user_id=user_id,
                )
            )

            moved = 0
            if new_status == "fulfilled":
                if line.product_type in inventory_backed_types():
                    tracker.consume(order.id, line.product_id, order_line_id=line.id)
                    moved = delivered + quantity
                    if moved:
                        ledger.apply_stock_change(
                            Scope(line.department_id, line.section_id),
                            line.product_id,
                            MOVEMENT_OUT,
                            moved,
                            "sale",
                            order.order_number,
                        )
                else:
                    current_app.logger.info(
                        "Line %s of %s is %s, not inventory-backed; no stock movement",
                        line.line_number, order.order_number, line.product_type,
                    )

            db.session.flush()
            db.session.refresh(line, ["fulfillments"])
            apply_rollup(order, order.lines)
            append_audit_event(
                event_type="order_line.fulfillment",
                event_category="fulfillment",
                entity_type="order_line",
                entity_id=line.id,
                department_id=line.department_id,
                actor_user_id=user_id,
                payload={
                    "order_number": order.order_number,
                    "status": new_status,
                    "fulfilled_quantity": quantity,
                    "stock_decremented": moved,
                },
            )
    except (StaleDataError, OperationalError) as exc:
        raise ConcurrencyConflictError(
            f"Line {line_id} of order {order_id} was modified concurrently; reload and retry"
        ) from exc

    rollup_after_fulfillment(order.id)
    return order
