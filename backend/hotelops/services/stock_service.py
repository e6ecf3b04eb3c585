# Overview: Service-layer operations for scoped stock counters and the movement log.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryItem, StockEntry, MovementRecord
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..scope import Scope
from ..concurrency import run_with_retry
from .audit_service import append_audit_event
"""
Stock ledger invariants (authoritative)

- A StockEntry counts one item at one scope (department, optional section).
- quantity >= 0 and reserved >= 0 at every commit; CHECK constraints back this.
- Decrements are single conditional UPDATEs (WHERE quantity >= amount); zero
  affected rows means insufficient stock. Never read-then-write.
- Every counter change is paired with exactly one MovementRecord written in
  the same transaction by apply_stock_change. No other code path writes
  counters or movements.
- Availability is quantity minus reserved, never the raw quantity.
"""

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)

MOVEMENT_REASONS = ("sale", "transfer-in", "transfer-out", "restock", "adjustment")


@dataclass(frozen=True)
class Availability:
    has_stock: bool
    available: int
    required: int
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "has_stock": self.has_stock,
            "available": self.available,
            "required": self.required,
            "message": self.message,
        }


@dataclass(frozen=True)
class StockBalance:
    item_id: int
    scope: Scope
    quantity: int
    reserved: int

    @property
    def available(self) -> int:
        return max(0, self.quantity - self.reserved)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            **self.scope.to_dict(),
            "quantity": self.quantity,
            "reserved": self.reserved,
            "available": self.available,
        }


def inventory_backed_types() -> tuple:
    return tuple(current_app.config["INVENTORY_BACKED_PRODUCT_TYPES"])


def _require_positive(quantity, label: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{label} must be an integer")
    if quantity <= 0:
        raise ValidationError(f"{label} must be positive")
    return quantity


class StockLedger:
    """Scoped stock counters plus their movement log, bound to one session."""

    def __init__(self, session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, item_id: int, scope: Scope) -> StockBalance:
        # Column query, not entity: counters move through Core UPDATEs and
        # an identity-mapped StockEntry may hold stale values.
        row = (
            self.session.query(StockEntry.quantity, StockEntry.reserved)
            .filter(StockEntry.item_id == item_id, StockEntry.scope_key == scope.key)
            .first()
        )
        if row is None:
            return StockBalance(item_id=item_id, scope=scope, quantity=0, reserved=0)
        return StockBalance(item_id=item_id, scope=scope, quantity=row.quantity, reserved=row.reserved)

    def check_availability(self, item_type: str, item_id: int, scope: Scope, quantity: int) -> Availability:
        """Read-only; a missing stock row counts as 0 available."""
        if item_type not in inventory_backed_types():
            raise ValidationError(f"Product type {item_type} is not inventory-backed")
        required = _require_positive(quantity)

        item = self.session.get(InventoryItem, item_id)
        if item is None:
            return Availability(False, 0, required, f"Item {item_id} not found")

        available = self.get_balance(item_id, scope).available
        if available < required:
            return Availability(
                False,
                available,
                required,
                f"Insufficient stock for {item.name}: available {available}, required {required}",
            )
        return Availability(True, available, required)

    def list_balances(self, scope: Scope | None = None, item_id: int | None = None) -> list[StockEntry]:
        query = self.session.query(StockEntry).populate_existing()
        if scope is not None:
            query = query.filter(StockEntry.scope_key == scope.key)
        if item_id is not None:
            query = query.filter(StockEntry.item_id == item_id)
        return query.order_by(StockEntry.item_id.asc(), StockEntry.scope_key.asc()).all()

    def list_movements(
        self,
        *,
        item_id: int | None = None,
        reference: str | None = None,
        scope: Scope | None = None,
        limit: int = 100,
    ) -> list[MovementRecord]:
        query = self.session.query(MovementRecord)
        if item_id is not None:
            query = query.filter(MovementRecord.item_id == item_id)
        if reference:
            query = query.filter(MovementRecord.reference == reference)
        if scope is not None:
            query = query.filter(MovementRecord.department_id == scope.department_id)
            if scope.section_id is None:
                query = query.filter(MovementRecord.section_id.is_(None))
            else:
                query = query.filter(MovementRecord.section_id == scope.section_id)

        limit = min(max(limit, 1), 500)
        return query.order_by(MovementRecord.id.desc()).limit(limit).all()

    # ------------------------------------------------------------------
    # Counter writes (caller's transaction)
    # ------------------------------------------------------------------

    def decrement(self, scope: Scope, item_id: int, amount: int, *, respect_reservations: bool = False) -> int:
        """
        Conditional decrement; returns the affected-row count (0 or 1).

        respect_reservations=True guards on quantity - reserved instead of
        quantity, so units held for orders cannot be moved away.
        """
        _require_positive(amount, "amount")
        if respect_reservations:
            guard = StockEntry.quantity - StockEntry.reserved >= amount
        else:
            guard = StockEntry.quantity >= amount

        stmt = (
            update(StockEntry)
            .where(
                StockEntry.item_id == item_id,
                StockEntry.scope_key == scope.key,
                guard,
            )
            .values(quantity=StockEntry.quantity - amount)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount

    def increment(self, scope: Scope, item_id: int, amount: int) -> int:
        """Unconditional increment; creates the scope row when missing."""
        _require_positive(amount, "amount")
        stmt = (
            update(StockEntry)
            .where(StockEntry.item_id == item_id, StockEntry.scope_key == scope.key)
            .values(quantity=StockEntry.quantity + amount)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount:
            return result.rowcount

        try:
            with self.session.begin_nested():
                self.session.add(
                    StockEntry(
                        item_id=item_id,
                        department_id=scope.department_id,
                        section_id=scope.section_id,
                        scope_key=scope.key,
                        quantity=amount,
                        reserved=0,
                    )
                )
            return 1
        except IntegrityError:
            # A concurrent writer created the row first.
            result = self.session.execute(stmt)
            if not result.rowcount:
                raise
            return result.rowcount

    def record_movement(
        self,
        movement_type: str,
        quantity: int,
        reason: str,
        reference: str | None,
        item_id: int,
        scope: Scope,
    ) -> MovementRecord:
        movement = MovementRecord(
            item_id=item_id,
            department_id=scope.department_id,
            section_id=scope.section_id,
            movement_type=movement_type,
            quantity=quantity,
            reason=reason,
            reference=reference,
        )
        self.session.add(movement)
        self.session.flush()
        return movement

    def apply_stock_change(
        self,
        scope: Scope,
        item_id: int,
        direction: str,
        quantity: int,
        reason: str,
        reference: str | None = None,
        *,
        respect_reservations: bool = False,
    ) -> MovementRecord:
        """
        Change one counter and write its movement row, in the caller's transaction.

        A decrement that matches no row raises InsufficientStockError before
        any movement is written; the caller rolls the whole transaction back.
        """
        if direction not in MOVEMENT_TYPES:
            raise ValidationError(f"Invalid movement direction: {direction}")
        if reason not in MOVEMENT_REASONS:
            raise ValidationError(f"Invalid movement reason: {reason}")
        _require_positive(quantity)

        if direction == MOVEMENT_OUT:
            if not self.decrement(scope, item_id, quantity, respect_reservations=respect_reservations):
                balance = self.get_balance(item_id, scope)
                available = balance.available if respect_reservations else balance.quantity
                raise InsufficientStockError(
                    f"Insufficient stock for item {item_id} at {scope}: "
                    f"available {available}, required {quantity}",
                    item_id=item_id,
                    scope=scope,
                    requested=quantity,
                    available=available,
                )
        else:
            if self.session.get(InventoryItem, item_id) is None:
                raise NotFoundError(f"Item {item_id} not found")
            self.increment(scope, item_id, quantity)

        return self.record_movement(direction, quantity, reason, reference, item_id, scope)

    # ------------------------------------------------------------------
    # Committed operations
    # ------------------------------------------------------------------

    def restock(self, scope: Scope, item_id: int, quantity: int, reference: str | None = None,
                user_id: int | None = None) -> MovementRecord:
        def _op():
            movement = self.apply_stock_change(scope, item_id, MOVEMENT_IN, quantity, "restock", reference)
            append_audit_event(
                event_type="stock.restocked",
                event_category="inventory",
                entity_type="inventory_item",
                entity_id=item_id,
                department_id=scope.department_id,
                actor_user_id=user_id,
                payload={"scope": scope.key, "quantity": quantity, "reference": reference},
            )
            self.session.commit()
            return movement

        return run_with_retry(_op, label="restock")

    def adjust(self, scope: Scope, item_id: int, delta: int, reference: str | None = None,
               user_id: int | None = None) -> MovementRecord:
        """Manual correction; a negative delta may only remove unreserved units."""
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError("delta must be a non-zero integer")

        def _op():
            direction = MOVEMENT_IN if delta > 0 else MOVEMENT_OUT
            movement = self.apply_stock_change(
                scope, item_id, direction, abs(delta), "adjustment", reference,
                respect_reservations=delta < 0,
            )
            append_audit_event(
                event_type="stock.adjusted",
                event_category="inventory",
                entity_type="inventory_item",
                entity_id=item_id,
                department_id=scope.department_id,
                actor_user_id=user_id,
                payload={"scope": scope.key, "delta": delta, "reference": reference},
            )
            self.session.commit()
            return movement

        return run_with_retry(_op, label="adjust")


def create_item(name: str, item_type: str = "inventoryItem", *, sku: str | None = None,
                unit_price_cents: int = 0) -> InventoryItem:
    def _op():
        if not name:
            raise ValidationError("Item name is required")
        if item_type not in inventory_backed_types():
            raise ValidationError(f"Invalid item type: {item_type}")
        if isinstance(unit_price_cents, bool) or not isinstance(unit_price_cents, int) or unit_price_cents < 0:
            raise ValidationError("unit_price_cents must be a non-negative integer")

        item = InventoryItem(name=name, item_type=item_type, sku=sku, unit_price_cents=unit_price_cents)
        db.session.add(item)
        db.session.commit()
        return item

    return run_with_retry(_op)


def get_ledger(session=None) -> StockLedger:
    return StockLedger(session or db.session)
