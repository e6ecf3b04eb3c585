from __future__ import annotations

from ..extensions import db
from hotelops.time_utils import to_utc_z


class Extra(db.Model):
    """
    Supplementary consumable (sauce, mixer, towel hire...).

    track_inventory=False extras are not counted: every allocation holds
    exactly 1 and availability checks always pass.
    """
    __tablename__ = "extras"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="unit")
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    track_inventory = db.Column(db.Boolean, nullable=False, default=False)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "track_inventory": self.track_inventory,
            "inventory_item_id": self.inventory_item_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ExtraAllocation(db.Model):
    """Quantity of an extra held at one scope (department or section)."""
    __tablename__ = "extra_allocations"
    __table_args__ = (
        db.UniqueConstraint("extra_id", "scope_key", name="uq_extra_allocations_extra_scope"),
        db.CheckConstraint("quantity >= 0", name="ck_extra_allocations_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    extra_id = db.Column(db.Integer, db.ForeignKey("extras.id"), nullable=False, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey("department_sections.id"), nullable=True)
    scope_key = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    extra = db.relationship("Extra")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "extra_id": self.extra_id,
            "extra_name": self.extra.name if self.extra else None,
            "track_inventory": self.extra.track_inventory if self.extra else None,
            "department_id": self.department_id,
            "section_id": self.section_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }
