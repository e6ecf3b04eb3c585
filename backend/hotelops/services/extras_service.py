# Overview: Service-layer operations for extras allocated to departments and sections.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Extra, ExtraAllocation, InventoryItem
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..scope import Scope
from ..concurrency import bounded_transaction, run_with_retry
from .audit_service import append_audit_event
from .directory_service import resolve_scope
from .stock_service import Availability
"""
Extras allocation rules

- Tracked extras (track_inventory=True) count units per scope; the counter
  never goes below zero and decrements are conditional UPDATEs.
- Untracked extras are not counted: an allocation means "offered here" and
  always holds exactly 1. Availability checks on them pass whenever an
  allocation exists, and a transfer only ensures the destination allocation.
- The two modes have separate code paths; nothing branches on quantity to
  guess the mode.
"""


def _positive(quantity, label: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(f"{label} must be a positive integer")
    return quantity


class ExtrasLedger:
    def __init__(self, session):
        self.session = session

    def get_extra(self, extra_id: int) -> Extra:
        extra = self.session.get(Extra, extra_id)
        if not extra:
            raise NotFoundError(f"Extra {extra_id} not found")
        return extra

    def _allocated(self, scope: Scope, extra_id: int) -> int | None:
        return (
            self.session.query(ExtraAllocation.quantity)
            .filter(ExtraAllocation.extra_id == extra_id, ExtraAllocation.scope_key == scope.key)
            .scalar()
        )

    def _insert_or(self, scope: Scope, extra_id: int, initial: int, fallback):
        try:
            with self.session.begin_nested():
                self.session.add(
                    ExtraAllocation(
                        extra_id=extra_id,
                        department_id=scope.department_id,
                        section_id=scope.section_id,
                        scope_key=scope.key,
                        quantity=initial,
                    )
                )
        except IntegrityError:
            if not self.session.execute(fallback).rowcount:
                raise

    def _add_tracked(self, scope: Scope, extra_id: int, quantity: int):
        stmt = (
            update(ExtraAllocation)
            .where(ExtraAllocation.extra_id == extra_id, ExtraAllocation.scope_key == scope.key)
            .values(quantity=ExtraAllocation.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if not self.session.execute(stmt).rowcount:
            self._insert_or(scope, extra_id, quantity, stmt)

    def _ensure_untracked(self, scope: Scope, extra_id: int):
        stmt = (
            update(ExtraAllocation)
            .where(ExtraAllocation.extra_id == extra_id, ExtraAllocation.scope_key == scope.key)
            .values(quantity=1)
            .execution_options(synchronize_session=False)
        )
        if not self.session.execute(stmt).rowcount:
            self._insert_or(scope, extra_id, 1, stmt)

    def _take_tracked(self, scope: Scope, extra_id: int, quantity: int):
        stmt = (
            update(ExtraAllocation)
            .where(
                ExtraAllocation.extra_id == extra_id,
                ExtraAllocation.scope_key == scope.key,
                ExtraAllocation.quantity >= quantity,
            )
            .values(quantity=ExtraAllocation.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if not self.session.execute(stmt).rowcount:
            available = self._allocated(scope, extra_id) or 0
            raise InsufficientStockError(
                f"Insufficient allocation of extra {extra_id} at {scope}: "
                f"available {available}, required {quantity}",
                item_id=extra_id,
                scope=scope,
                requested=quantity,
                available=available,
            )

    def allocate(self, scope: Scope, extra_id: int, quantity: int = 1) -> int:
        """Add units at a scope (tracked) or mark the extra as offered there (untracked)."""
        extra = self.get_extra(extra_id)
        if extra.track_inventory:
            self._add_tracked(scope, extra_id, _positive(quantity))
        else:
            self._ensure_untracked(scope, extra_id)
        self.session.flush()
        return self._allocated(scope, extra_id) or 0

    def check_availability(self, scope: Scope, extra_id: int, quantity: int) -> Availability:
        extra = self.get_extra(extra_id)
        required = _positive(quantity)
        allocated = self._allocated(scope, extra_id)
        if allocated is None:
            return Availability(False, 0, required, f"Extra {extra.name} is not allocated to {scope}")
        if not extra.track_inventory:
            return Availability(True, 1, required)
        if allocated < required:
            return Availability(
                False,
                allocated,
                required,
                f"Insufficient {extra.name}: available {allocated}, required {required}",
            )
        return Availability(True, allocated, required)

    def transfer_extra(self, source_scope: Scope, destination_scope: Scope, extra_id: int, quantity: int):
        """Move an extra between scopes in the caller's transaction."""
        extra = self.get_extra(extra_id)
        if extra.track_inventory:
            amount = _positive(quantity)
            self._take_tracked(source_scope, extra_id, amount)
            self._add_tracked(destination_scope, extra_id, amount)
        else:
            # Nothing to take at the source; the destination now offers it.
            self._ensure_untracked(destination_scope, extra_id)
        self.session.flush()

    def deduct_usage(self, scope: Scope, extra_id: int, quantity: int) -> int:
        """Consume units at a scope. Untracked extras are not counted; returns units taken."""
        extra = self.get_extra(extra_id)
        if not extra.track_inventory:
            return 0
        amount = _positive(quantity)
        self._take_tracked(scope, extra_id, amount)
        self.session.flush()
        return amount

    def list_allocations(self, scope: Scope) -> list[ExtraAllocation]:
        return (
            self.session.query(ExtraAllocation)
            .filter(ExtraAllocation.scope_key == scope.key)
            .order_by(ExtraAllocation.extra_id.asc())
            .populate_existing()
            .all()
        )

    def section_summary(self, scope: Scope, low_stock_threshold: int | None = None) -> dict:
        if low_stock_threshold is None:
            low_stock_threshold = current_app.config["LOW_STOCK_THRESHOLD"]

        available, low_stock, out_of_stock = [], [], []
        for allocation in self.list_allocations(scope):
            row = allocation.to_dict()
            if not allocation.extra.track_inventory:
                available.append(row)
            elif allocation.quantity <= 0:
                out_of_stock.append(row)
            elif allocation.quantity <= low_stock_threshold:
                low_stock.append(row)
                available.append(row)
            else:
                available.append(row)

        return {
            **scope.to_dict(),
            "available": available,
            "low_stock": low_stock,
            "out_of_stock": out_of_stock,
            "low_stock_threshold": low_stock_threshold,
        }


def get_extras_ledger(session=None) -> ExtrasLedger:
    return ExtrasLedger(session or db.session)


def create_extra(name: str, *, track_inventory: bool = False, unit: str = "unit", price_cents: int = 0,
                 inventory_item_id: int | None = None) -> Extra:
    def _op():
        if not name:
            raise ValidationError("Extra name is required")
        if isinstance(price_cents, bool) or not isinstance(price_cents, int) or price_cents < 0:
            raise ValidationError("price_cents must be a non-negative integer")
        if inventory_item_id is not None and not db.session.get(InventoryItem, inventory_item_id):
            raise NotFoundError(f"Item {inventory_item_id} not found")

        extra = Extra(
            name=name,
            unit=unit or "unit",
            price_cents=price_cents,
            track_inventory=bool(track_inventory),
            inventory_item_id=inventory_item_id,
        )
        db.session.add(extra)
        db.session.commit()
        return extra

    return run_with_retry(_op)


def allocate_extra(scope_code: str, extra_id: int, quantity: int = 1, *, user_id: int | None = None) -> dict:
    resolved = resolve_scope(scope_code)
    ledger = get_extras_ledger()
    with bounded_transaction(current_app.config["ORDER_TX_TIMEOUT_SECONDS"]):
        allocated = ledger.allocate(resolved.scope, extra_id, quantity)
        append_audit_event(
            event_type="extra.allocated",
            event_category="extras",
            entity_type="extra",
            entity_id=extra_id,
            department_id=resolved.scope.department_id,
            actor_user_id=user_id,
            payload={"scope": resolved.code, "quantity": quantity, "allocated": allocated},
        )
    return {"extra_id": extra_id, "scope": resolved.code, "quantity": allocated}


def record_usage(scope_code: str, extra_id: int, quantity: int, *, user_id: int | None = None) -> dict:
    resolved = resolve_scope(scope_code)
    ledger = get_extras_ledger()
    with bounded_transaction(current_app.config["ORDER_TX_TIMEOUT_SECONDS"]):
        taken = ledger.deduct_usage(resolved.scope, extra_id, quantity)
        append_audit_event(
            event_type="extra.used",
            event_category="extras",
            entity_type="extra",
            entity_id=extra_id,
            department_id=resolved.scope.department_id,
            actor_user_id=user_id,
            payload={"scope": resolved.code, "quantity": taken},
        )
    return {"extra_id": extra_id, "scope": resolved.code, "deducted": taken}
