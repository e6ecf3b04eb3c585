"""
Pricing collaborator.

Pure functions over integer cents. The order roll-up only re-sums line
totals and hands the result here; discount eligibility and tax rates are
decided by whoever calls apply_discount / create_order.
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import ValidationError


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    discount_total_cents: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_total_cents": self.discount_total_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def require_cents(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer amount in cents")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative")
    return value


def line_total(quantity: int, unit_price_cents: int) -> int:
    return quantity * unit_price_cents


def price_order(subtotal_cents: int, discount_total_cents: int = 0, tax_cents: int = 0) -> OrderTotals:
    """total = subtotal - discount + tax, never negative."""
    require_cents(subtotal_cents, "subtotal")
    require_cents(discount_total_cents, "discount_total")
    require_cents(tax_cents, "tax")
    if discount_total_cents > subtotal_cents:
        raise ValidationError(
            "Discount exceeds order subtotal",
            {"subtotal_cents": subtotal_cents, "discount_total_cents": discount_total_cents},
        )
    return OrderTotals(
        subtotal_cents=subtotal_cents,
        discount_total_cents=discount_total_cents,
        tax_cents=tax_cents,
        total_cents=subtotal_cents - discount_total_cents + tax_cents,
    )
