from __future__ import annotations

from ..extensions import db
from hotelops.time_utils import to_utc_z


class Department(db.Model):
    """
    Operating department (restaurant, bar, games, retail, rooms...).

    Department-level stock rows (section_id NULL) are the source of record
    for transfers. `stats` holds the last roll-up computed by
    department_service; it is derived data and may lag behind orders.
    """
    __tablename__ = "departments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    stats = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Department id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "stats": self.stats,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DepartmentSection(db.Model):
    """
    Consumption point inside a department (e.g. the pool bar of BAR).

    Addressed externally as "<DEPARTMENT_CODE>:<slug-or-id>".
    """
    __tablename__ = "department_sections"
    __table_args__ = (
        db.UniqueConstraint("department_id", "slug", name="uq_department_sections_dept_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False, index=True)
    slug = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    stats = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    department = db.relationship("Department", backref=db.backref("sections", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "department_id": self.department_id,
            "slug": self.slug,
            "name": self.name,
            "is_active": self.is_active,
            "stats": self.stats,
            "created_at": to_utc_z(self.created_at),
        }
