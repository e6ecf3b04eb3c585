from __future__ import annotations

from ..extensions import db
from hotelops.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Catalogue entry for an inventory-backed product (drink, food, generic item).

    Quantities are never stored here; they live in StockEntry per scope.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_type_name", "item_type", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)

    # inventoryItem, drink, food
    item_type = db.Column(db.String(32), nullable=False, default="inventoryItem")

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} type={self.item_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "item_type": self.item_type,
            "unit_price_cents": self.unit_price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StockEntry(db.Model):
    """
    Quantity counter for one item at one scope.

    INVARIANTS:
    - quantity >= 0 and reserved >= 0 (CHECK constraints back the
      conditional updates in StockLedger).
    - available = max(0, quantity - reserved).
    - scope_key mirrors (department_id, section_id) and carries uniqueness.

    Only StockLedger and ReservationTracker write these rows, always with
    single conditional UPDATE statements.
    """
    __tablename__ = "stock_entries"
    __table_args__ = (
        db.UniqueConstraint("item_id", "scope_key", name="uq_stock_entries_item_scope"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_entries_quantity_nonneg"),
        db.CheckConstraint("reserved >= 0", name="ck_stock_entries_reserved_nonneg"),
        db.Index("ix_stock_entries_dept_section", "department_id", "section_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("department_sections.id"), nullable=True)
    scope_key = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    item = db.relationship("InventoryItem")

    @property
    def available(self) -> int:
        return max(0, (self.quantity or 0) - (self.reserved or 0))

    def __repr__(self) -> str:
        return f"<StockEntry item={self.item_id} scope={self.scope_key} qty={self.quantity} reserved={self.reserved}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "department_id": self.department_id,
            "section_id": self.section_id,
            "quantity": self.quantity,
            "reserved": self.reserved,
            "available": self.available,
            "updated_at": to_utc_z(self.updated_at),
        }


class MovementRecord(db.Model):
    """
    Append-only audit row documenting one stock increase or decrease.

    Written only by StockLedger.apply_stock_change, in the same transaction
    as the counter change it documents. Never updated or deleted
    (enforced by hotelops.immutability).
    """
    __tablename__ = "movement_records"
    __table_args__ = (
        db.Index("ix_movements_item_created", "item_id", "created_at"),
        db.Index("ix_movements_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("department_sections.id"), nullable=True)

    # in, out
    movement_type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    # sale, transfer-in, transfer-out, restock, adjustment
    reason = db.Column(db.String(32), nullable=False, index=True)
    reference = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "department_id": self.department_id,
            "section_id": self.section_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }


class Reservation(db.Model):
    """
    Hold on available stock for a placed, not yet fulfilled order line.

    LIFECYCLE: reserved -> consumed (fulfillment) | released (cancellation,
    line removal or quantity change).
    """
    __tablename__ = "reservations"
    __table_args__ = (
        db.Index("ix_reservations_order_item_status", "order_id", "item_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_line_id = db.Column(db.Integer, db.ForeignKey("order_lines.id"), nullable=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("department_sections.id"), nullable=True)
    scope_key = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="reserved", index=True)

    reserved_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_line_id": self.order_line_id,
            "item_id": self.item_id,
            "department_id": self.department_id,
            "section_id": self.section_id,
            "quantity": self.quantity,
            "status": self.status,
            "reserved_at": to_utc_z(self.reserved_at),
            "consumed_at": to_utc_z(self.consumed_at),
            "released_at": to_utc_z(self.released_at),
        }
