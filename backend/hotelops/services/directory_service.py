# Overview: Department directory; the only place external scope codes are parsed.

from __future__ import annotations

import re
from dataclasses import dataclass

from ..extensions import db
from ..models import Department, DepartmentSection
from ..errors import ConflictError, NotFoundError, ValidationError
from ..scope import Scope
from ..concurrency import run_with_retry


SECTION_SEPARATOR = ":"
_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ResolvedScope:
    """A scope code resolved against the directory."""
    code: str
    scope: Scope
    department: Department
    section: DepartmentSection | None = None

    @property
    def is_section(self) -> bool:
        return self.section is not None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "department_id": self.scope.department_id,
            "section_id": self.scope.section_id,
            "department_code": self.department.code,
            "section_slug": self.section.slug if self.section else None,
        }


def slugify(value: str) -> str:
    return _SLUG_RE.sub("-", value.strip().lower()).strip("-")


def create_department(code: str, name: str, description: str | None = None) -> Department:
    def _op():
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Department code is required")
        if SECTION_SEPARATOR in normalized:
            raise ValidationError(f"Department code may not contain '{SECTION_SEPARATOR}'")
        if not name:
            raise ValidationError("Department name is required")

        if db.session.query(Department).filter_by(code=normalized).first():
            raise ConflictError(f"Department {normalized} already exists")

        department = Department(code=normalized, name=name, description=description)
        db.session.add(department)
        db.session.commit()
        return department

    return run_with_retry(_op)


def create_section(department_code: str, name: str, slug: str | None = None) -> DepartmentSection:
    def _op():
        department = get_department_by_code(department_code)
        if not name:
            raise ValidationError("Section name is required")

        section_slug = slugify(slug or name)
        if not section_slug:
            raise ValidationError("Section slug is required")

        existing = (
            db.session.query(DepartmentSection)
            .filter_by(department_id=department.id, slug=section_slug)
            .first()
        )
        if existing:
            raise ConflictError(f"Section {department.code}{SECTION_SEPARATOR}{section_slug} already exists")

        section = DepartmentSection(department_id=department.id, slug=section_slug, name=name)
        db.session.add(section)
        db.session.commit()
        return section

    return run_with_retry(_op)


def get_department_by_code(code: str) -> Department:
    normalized = (code or "").strip().upper()
    department = db.session.query(Department).filter_by(code=normalized).first()
    if not department:
        raise NotFoundError(f"Department {code} not found")
    return department


def list_departments(include_inactive: bool = False) -> list[Department]:
    query = db.session.query(Department)
    if not include_inactive:
        query = query.filter(Department.is_active.is_(True))
    return query.order_by(Department.code.asc()).all()


def resolve_scope(code: str) -> ResolvedScope:
    """
    Resolve "DEPT" or "DEPT:<section slug or id>" to a Scope.

    Sections must be active and belong to the named parent department.
    """
    raw = (code or "").strip()
    if not raw:
        raise ValidationError("Scope code is required")

    parent_code, sep, section_ref = raw.partition(SECTION_SEPARATOR)
    department = get_department_by_code(parent_code)
    if not department.is_active:
        raise ValidationError(f"Department {department.code} is inactive")

    if not sep:
        return ResolvedScope(code=department.code, scope=Scope(department.id), department=department)

    section_ref = section_ref.strip()
    if not section_ref:
        raise ValidationError(f"Section reference missing in {raw}")

    query = db.session.query(DepartmentSection).filter(
        DepartmentSection.department_id == department.id,
        DepartmentSection.is_active.is_(True),
    )
    if section_ref.isdigit():
        section = query.filter(
            (DepartmentSection.slug == section_ref) | (DepartmentSection.id == int(section_ref))
        ).first()
    else:
        section = query.filter(DepartmentSection.slug == section_ref.lower()).first()
    if not section:
        raise NotFoundError(f"Section {raw} not found")

    return ResolvedScope(
        code=f"{department.code}{SECTION_SEPARATOR}{section.slug}",
        scope=Scope(department.id, section.id),
        department=department,
        section=section,
    )


def describe_scope(scope: Scope) -> str:
    """Human-readable code for a scope ("BAR" or "BAR:pool")."""
    department = db.session.get(Department, scope.department_id)
    if not department:
        return str(scope)
    if scope.section_id is None:
        return department.code
    section = db.session.get(DepartmentSection, scope.section_id)
    if not section:
        return f"{department.code}{SECTION_SEPARATOR}{scope.section_id}"
    return f"{department.code}{SECTION_SEPARATOR}{section.slug}"
