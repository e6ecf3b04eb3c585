from __future__ import annotations

from ..extensions import db
from hotelops.time_utils import to_utc_z


class Transfer(db.Model):
    """
    Cross-department stock transfer document.

    LIFECYCLE:
    1. pending: created with its items
    2. approved: optionally signed off before execution
    3. completed: stock moved; terminal and immutable

    SCOPES: the source is always department level (no section). The
    destination is a department, or one of its sections when to_section_id
    is set.
    """
    __tablename__ = "transfers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transfer_number = db.Column(db.String(64), nullable=False, unique=True)

    from_department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    to_department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    to_section_id = db.Column(db.Integer, db.ForeignKey("department_sections.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    approved_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.relationship(
        "TransferItem",
        backref="transfer",
        lazy=True,
        order_by="TransferItem.position",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_number": self.transfer_number,
            "from_department_id": self.from_department_id,
            "to_department_id": self.to_department_id,
            "to_section_id": self.to_section_id,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "approved_at": to_utc_z(self.approved_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class TransferItem(db.Model):
    """One product and quantity moved by a transfer, in entry order."""
    __tablename__ = "transfer_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transfer_items_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("transfers.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # inventoryItem, drink, food, extra
    product_type = db.Column(db.String(32), nullable=False)
    product_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_id": self.transfer_id,
            "position": self.position,
            "product_type": self.product_type,
            "product_id": self.product_id,
            "quantity": self.quantity,
        }
