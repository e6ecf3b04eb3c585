# Overview: Service-layer operations for stock reservations held by open orders.

from __future__ import annotations

from sqlalchemy import case, update

from ..extensions import db
from ..models import Reservation, StockEntry
from ..errors import InsufficientStockError, ValidationError
from ..scope import Scope
from hotelops.time_utils import utcnow
"""
Reservation invariants

- reserve only ever raises StockEntry.reserved, guarded by
  quantity - reserved >= q in the same UPDATE; quantity is never touched.
- consume and release hand the held units back to the counter
  (reserved -= q, clamped at 0). After consume the stock decrement done by
  fulfillment is the only change to quantity, so nothing is counted twice.
- All writes happen in the caller's transaction; nothing here commits.
"""

RESERVED = "reserved"
CONSUMED = "consumed"
RELEASED = "released"


class ReservationTracker:
    def __init__(self, session):
        self.session = session

    def reserve(self, order_id: int, item_id: int, quantity: int, scope: Scope,
                order_line_id: int | None = None) -> Reservation:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Reservation quantity must be a positive integer")

        stmt = (
            update(StockEntry)
            .where(
                StockEntry.item_id == item_id,
                StockEntry.scope_key == scope.key,
                StockEntry.quantity - StockEntry.reserved >= quantity,
            )
            .values(reserved=StockEntry.reserved + quantity)
            .execution_options(synchronize_session=False)
        )
        if not self.session.execute(stmt).rowcount:
            row = (
                self.session.query(StockEntry.quantity, StockEntry.reserved)
                .filter(StockEntry.item_id == item_id, StockEntry.scope_key == scope.key)
                .first()
            )
            available = max(0, row.quantity - row.reserved) if row else 0
            raise InsufficientStockError(
                f"Cannot reserve {quantity} of item {item_id} at {scope}: available {available}",
                item_id=item_id,
                scope=scope,
                requested=quantity,
                available=available,
            )

        reservation = Reservation(
            order_id=order_id,
            order_line_id=order_line_id,
            item_id=item_id,
            department_id=scope.department_id,
            section_id=scope.section_id,
            scope_key=scope.key,
            quantity=quantity,
            status=RESERVED,
        )
        self.session.add(reservation)
        self.session.flush()
        return reservation

    def _open(self, order_id: int, item_id: int | None, order_line_id: int | None) -> list[Reservation]:
        query = self.session.query(Reservation).filter(
            Reservation.order_id == order_id,
            Reservation.status == RESERVED,
        )
        if item_id is not None:
            query = query.filter(Reservation.item_id == item_id)
        if order_line_id is not None:
            query = query.filter(Reservation.order_line_id == order_line_id)
        return query.order_by(Reservation.id.asc()).all()

    def _return_held(self, reservation: Reservation):
        held = reservation.quantity
        stmt = (
            update(StockEntry)
            .where(
                StockEntry.item_id == reservation.item_id,
                StockEntry.scope_key == reservation.scope_key,
            )
            .values(
                reserved=case(
                    (StockEntry.reserved >= held, StockEntry.reserved - held),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)

    def consume(self, order_id: int, item_id: int, order_line_id: int | None = None) -> int:
        """Close the matching holds as consumed; returns the units they held."""
        total = 0
        now = utcnow()
        for reservation in self._open(order_id, item_id, order_line_id):
            self._return_held(reservation)
            reservation.status = CONSUMED
            reservation.consumed_at = now
            total += reservation.quantity
        self.session.flush()
        return total

    def release(self, order_id: int, item_id: int | None = None, order_line_id: int | None = None) -> int:
        """Cancel the matching holds; returns the units given back."""
        total = 0
        now = utcnow()
        for reservation in self._open(order_id, item_id, order_line_id):
            self._return_held(reservation)
            reservation.status = RELEASED
            reservation.released_at = now
            total += reservation.quantity
        self.session.flush()
        return total

    def list_for_order(self, order_id: int, status: str | None = None) -> list[Reservation]:
        query = self.session.query(Reservation).filter(Reservation.order_id == order_id)
        if status:
            query = query.filter(Reservation.status == status)
        return query.order_by(Reservation.id.asc()).all()


def get_tracker(session=None) -> ReservationTracker:
    return ReservationTracker(session or db.session)
