from __future__ import annotations

from ..extensions import db
from hotelops.time_utils import to_utc_z


class Order(db.Model):
    """
    Point-of-sale order header.

    STATUS: pending, processing, fulfilled, completed, cancelled, refunded.
    cancelled and refunded are terminal; orders are never deleted.

    MONEY: integral cents. total_cents = subtotal_cents - discount_total_cents
    + tax_cents and never negative; subtotal_cents is the sum of line totals.
    Both are maintained by rollup_service.apply_rollup.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_orders_total_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    customer_ref = db.Column(db.String(128), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Line numbers are allocated from here so removed numbers are never reused.
    next_line_number = db.Column(db.Integer, nullable=False, default=1)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.line_number",
    )
    departments = db.relationship("OrderDepartment", backref="order", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_ref": self.customer_ref,
            "status": self.status,
            "payment_status": self.payment_status,
            "subtotal_cents": self.subtotal_cents,
            "discount_total_cents": self.discount_total_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict(include_fulfillments=True) for line in self.lines]
            data["departments"] = [d.to_dict() for d in self.departments]
        return data


class OrderDepartment(db.Model):
    """Association of an order with a department it routes work to."""
    __tablename__ = "order_departments"
    __table_args__ = (
        db.UniqueConstraint("order_id", "department_id", name="uq_order_departments_order_dept"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending")

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "department_id": self.department_id,
            "status": self.status,
        }


class OrderLine(db.Model):
    """
    One line of an order.

    line_number is unique and monotonic within the order (removed numbers are
    not reused). status only moves forward: pending -> processing -> fulfilled,
    or pending -> fulfilled directly.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "line_number", name="uq_order_lines_order_line_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=False)
    product_type = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    department_code = db.Column(db.String(64), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("department_sections.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    fulfillments = db.relationship(
        "FulfillmentRecord",
        backref="line",
        lazy=True,
        order_by="FulfillmentRecord.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def delivered_quantity(self) -> int:
        return sum(f.fulfilled_quantity for f in self.fulfillments)

    def to_dict(self, include_fulfillments: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_type": self.product_type,
            "product_name": self.product_name,
            "department_id": self.department_id,
            "department_code": self.department_code,
            "section_id": self.section_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
        if include_fulfillments:
            data["fulfillments"] = [f.to_dict() for f in self.fulfillments]
        return data


class FulfillmentRecord(db.Model):
    """
    Append-only record of one line status transition.

    The line's current status equals the status of its latest record.
    fulfilled_quantity counts the units handed over in that transition; the
    sum over a line never exceeds the line quantity.
    """
    __tablename__ = "fulfillment_records"
    __table_args__ = (
        db.CheckConstraint("fulfilled_quantity >= 0", name="ck_fulfillment_records_qty_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_line_id = db.Column(db.Integer, db.ForeignKey("order_lines.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False)
    fulfilled_quantity = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    actor_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_line_id": self.order_line_id,
            "status": self.status,
            "fulfilled_quantity": self.fulfilled_quantity,
            "notes": self.notes,
            "fulfilled_at": to_utc_z(self.fulfilled_at),
            "actor_user_id": self.actor_user_id,
            "created_at": to_utc_z(self.created_at),
        }
