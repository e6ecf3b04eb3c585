"""
Stock scope: where a quantity is counted.

A scope is a department plus an optional section. section_id=None means the
department-level row (the transfer source of record); a section id means the
consumption point inside that department. Both shapes live in the same
tables and are told apart only by section_id.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Scope:
    department_id: int
    section_id: Optional[int] = None

    @property
    def is_section(self) -> bool:
        return self.section_id is not None

    @property
    def key(self) -> str:
        """
        Stable string used for uniqueness.

        SQL UNIQUE constraints treat NULLs as distinct, so (item, department,
        NULL) would not be unique on its own.
        """
        if self.section_id is None:
            return f"d{self.department_id}"
        return f"d{self.department_id}:s{self.section_id}"

    def to_dict(self) -> dict:
        return {"department_id": self.department_id, "section_id": self.section_id}

    def __str__(self) -> str:
        return self.key
