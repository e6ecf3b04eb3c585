# Overview: Pure roll-up of order status and money totals from its lines.

from __future__ import annotations

from dataclasses import dataclass

from ..pricing import OrderTotals, price_order


LINE_PENDING = "pending"
LINE_PROCESSING = "processing"
LINE_FULFILLED = "fulfilled"

# Order statuses the roll-up never overrides.
STICKY_ORDER_STATUSES = ("cancelled", "refunded", "completed")


@dataclass(frozen=True)
class FulfillmentSummary:
    total_lines: int
    fulfilled_lines: int
    processing_lines: int
    pending_lines: int

    @property
    def fulfillment_percentage(self) -> int:
        if not self.total_lines:
            return 0
        return round(self.fulfilled_lines * 100 / self.total_lines)

    def to_dict(self) -> dict:
        return {
            "total_lines": self.total_lines,
            "fulfilled_lines": self.fulfilled_lines,
            "processing_lines": self.processing_lines,
            "pending_lines": self.pending_lines,
            "fulfillment_percentage": self.fulfillment_percentage,
        }


def summarize_lines(lines) -> FulfillmentSummary:
    statuses = [line.status for line in lines]
    return FulfillmentSummary(
        total_lines=len(statuses),
        fulfilled_lines=statuses.count(LINE_FULFILLED),
        processing_lines=statuses.count(LINE_PROCESSING),
        pending_lines=statuses.count(LINE_PENDING),
    )


def derive_order_status(current_status: str, lines) -> str:
    """
    cancelled / refunded / completed stay as they are.
    Every line fulfilled (and at least one line) -> fulfilled.
    Any line past pending while the order is pending -> processing.
    Otherwise the current status is kept.
    """
    if current_status in STICKY_ORDER_STATUSES:
        return current_status

    summary = summarize_lines(lines)
    if summary.total_lines and summary.fulfilled_lines == summary.total_lines:
        return "fulfilled"
    if current_status == "pending" and summary.pending_lines < summary.total_lines:
        return "processing"
    return current_status


def compute_totals(lines, discount_total: int, tax: int, pricing=price_order) -> OrderTotals:
    subtotal = sum(line.line_total_cents for line in lines)
    return pricing(subtotal, discount_total, tax)


def apply_rollup(order, lines=None, *, pricing=price_order) -> bool:
    """
    Write derived status and totals onto the order.

    Only attributes whose value actually differs are assigned, so a repeated
    roll-up is a no-op and does not bump the order's version. Returns True
    when anything changed.
    """
    if lines is None:
        lines = order.lines

    changed = False
    status = derive_order_status(order.status, lines)
    if status != order.status:
        order.status = status
        changed = True

    totals = compute_totals(lines, order.discount_total_cents or 0, order.tax_cents or 0, pricing=pricing)
    for attr, value in (
        ("subtotal_cents", totals.subtotal_cents),
        ("discount_total_cents", totals.discount_total_cents),
        ("tax_cents", totals.tax_cents),
        ("total_cents", totals.total_cents),
    ):
        if getattr(order, attr) != value:
            setattr(order, attr, value)
            changed = True

    return changed
