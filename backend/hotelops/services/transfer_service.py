# backend/hotelops/services/transfer_service.py
"""
Cross-department stock transfers.

LIFECYCLE:
1. pending: transfer created with its items
2. approved: optional sign-off (mark_approved); no stock moves
3. completed: approve_transfer moved the core stock; terminal

PROTOCOL (approve_transfer):
- Preflight: read-only availability of every item at the source department.
  The read transaction is released before any write begins.
- Commit: one bounded transaction claims the transfer
  (pending|approved -> completed), decrements the source and increments the
  destination for each core item, and writes paired transfer-out /
  transfer-in movements referencing the transfer number. A zero-row
  decrement aborts the whole transaction.
- Retry: preflight + commit repeat on lock/serialization conflicts with a
  randomized, growing backoff. Insufficient stock and validation failures
  are final and come back as an unsuccessful TransferResult.
- Extras move after the core commit, each in its own transaction. A failed
  extra is logged and reported in skipped_extras; the core transfer stays
  completed.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func, or_, update

from ..extensions import db
from ..models import Extra, InventoryItem, Transfer, TransferItem
from ..errors import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from ..concurrency import bounded_transaction, lock_for_update, run_with_retry
from ..scope import Scope
from hotelops.time_utils import utcnow
from .audit_service import append_audit_event
from .directory_service import describe_scope, resolve_scope
from .document_service import next_transfer_number
from .extras_service import get_extras_ledger
from .stock_service import MOVEMENT_IN, MOVEMENT_OUT, get_ledger, inventory_backed_types


TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_APPROVED = "approved"
TRANSFER_STATUS_COMPLETED = "completed"
OPEN_STATUSES = (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_APPROVED)

EXTRA_PRODUCT_TYPE = "extra"


@dataclass
class TransferResult:
    success: bool
    message: str
    transfer: Transfer | None = None
    skipped_extras: list[dict] = field(default_factory=list)
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "transfer": self.transfer.to_dict() if self.transfer else None,
            "skipped_extras": list(self.skipped_extras),
            "details": dict(self.details),
        }


def _transferable_types() -> tuple:
    return inventory_backed_types() + (EXTRA_PRODUCT_TYPE,)


def _validate_items(items) -> list[tuple[str, int, int]]:
    if not items or not isinstance(items, list):
        raise ValidationError("A transfer needs at least one item")

    cleaned = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {index} must be an object")
        product_type = item.get("product_type")
        product_id = item.get("product_id")
        quantity = item.get("quantity")

        if product_type not in _transferable_types():
            raise ValidationError(
                f"Item {index}: invalid product_type {product_type}",
                {"allowed": list(_transferable_types())},
            )
        if isinstance(product_id, bool) or not isinstance(product_id, int) or product_id <= 0:
            raise ValidationError(f"Item {index}: product_id must be a positive integer")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"Item {index}: quantity must be a positive integer")

        model = Extra if product_type == EXTRA_PRODUCT_TYPE else InventoryItem
        if not db.session.get(model, product_id):
            raise NotFoundError(f"Item {index}: {product_type} {product_id} not found")

        cleaned.append((product_type, product_id, quantity))
    return cleaned


def create_transfer(
    from_code: str,
    to_code: str,
    items: list[dict],
    user_id: int | None = None,
    notes: str | None = None,
) -> Transfer:
    """
    Create a pending transfer.

    The source must be a department; the destination may be a department or
    one of its sections ("BAR:pool").
    """
    source = resolve_scope(from_code)
    if source.is_section:
        raise ValidationError("Transfers are sourced from a department, not a section")
    destination = resolve_scope(to_code)
    if source.scope == destination.scope:
        raise ValidationError("Source and destination must differ")

    cleaned = _validate_items(items)

    with bounded_transaction(current_app.config["TRANSFER_TX_TIMEOUT_SECONDS"]):
        transfer = Transfer(
            transfer_number=next_transfer_number(),
            from_department_id=source.scope.department_id,
            to_department_id=destination.scope.department_id,
            to_section_id=destination.scope.section_id,
            status=TRANSFER_STATUS_PENDING,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(transfer)
        db.session.flush()

        for position, (product_type, product_id, quantity) in enumerate(cleaned, start=1):
            db.session.add(
                TransferItem(
                    transfer_id=transfer.id,
                    position=position,
                    product_type=product_type,
                    product_id=product_id,
                    quantity=quantity,
                )
            )

        append_audit_event(
            event_type="transfer.created",
            event_category="transfers",
            entity_type="transfer",
            entity_id=transfer.id,
            department_id=transfer.from_department_id,
            actor_user_id=user_id,
            payload={"from": source.code, "to": destination.code, "items": len(cleaned)},
        )

    return transfer


def get_transfer(transfer_id: int, *, lock: bool = False) -> Transfer:
    query = db.session.query(Transfer).filter_by(id=transfer_id)
    if lock:
        query = lock_for_update(query)
    transfer = query.populate_existing().first()
    if not transfer:
        raise NotFoundError(f"Transfer {transfer_id} not found")
    return transfer


def mark_approved(transfer_id: int, user_id: int | None = None) -> Transfer:
    """Sign off a pending transfer without moving stock."""
    with bounded_transaction(current_app.config["TRANSFER_TX_TIMEOUT_SECONDS"]):
        transfer = get_transfer(transfer_id, lock=True)
        if transfer.status != TRANSFER_STATUS_PENDING:
            raise ValidationError(f"Transfer {transfer.transfer_number} is {transfer.status}")

        transfer.status = TRANSFER_STATUS_APPROVED
        transfer.approved_by_user_id = user_id
        transfer.approved_at = utcnow()
        append_audit_event(
            event_type="transfer.approved",
            event_category="transfers",
            entity_type="transfer",
            entity_id=transfer.id,
            department_id=transfer.from_department_id,
            actor_user_id=user_id,
        )
    return transfer


def _preflight(transfer: Transfer, source: Scope, ledger, extras) -> tuple[list, list]:
    core, extra_items = [], []
    for item in transfer.items:
        if item.product_type == EXTRA_PRODUCT_TYPE:
            availability = extras.check_availability(source, item.product_id, item.quantity)
            extra_items.append((item.product_id, item.quantity))
        else:
            availability = ledger.check_availability(item.product_type, item.product_id, source, item.quantity)
            core.append((item.product_id, item.quantity))

        if not availability.has_stock:
            raise InsufficientStockError(
                availability.message or f"Insufficient stock for {item.product_type} {item.product_id}",
                item_id=item.product_id,
                scope=source,
                requested=item.quantity,
                available=availability.available,
            )
    return core, extra_items


def _commit_core(transfer_id: int, transfer_number: str, source: Scope, destination: Scope, core: list,
                 user_id: int | None, ledger) -> None:
    with bounded_transaction(current_app.config["TRANSFER_TX_TIMEOUT_SECONDS"]):
        now = utcnow()
        claim = (
            update(Transfer)
            .where(Transfer.id == transfer_id, Transfer.status.in_(OPEN_STATUSES))
            .values(
                status=TRANSFER_STATUS_COMPLETED,
                completed_at=now,
                approved_by_user_id=func.coalesce(Transfer.approved_by_user_id, user_id),
                approved_at=func.coalesce(Transfer.approved_at, now),
            )
            .execution_options(synchronize_session=False)
        )
        if not db.session.execute(claim).rowcount:
            raise ValidationError(f"Transfer {transfer_number} is already completed")

        for item_id, quantity in core:
            ledger.apply_stock_change(
                source, item_id, MOVEMENT_OUT, quantity, "transfer-out", transfer_number,
                respect_reservations=True,
            )
            ledger.apply_stock_change(
                destination, item_id, MOVEMENT_IN, quantity, "transfer-in", transfer_number,
            )

        append_audit_event(
            event_type="transfer.completed",
            event_category="transfers",
            entity_type="transfer",
            entity_id=transfer_id,
            department_id=source.department_id,
            actor_user_id=user_id,
            payload={"reference": transfer_number, "core_items": len(core)},
        )


def _move_extras(transfer_number: str, source: Scope, destination: Scope, extra_items: list,
                 extras) -> list[dict]:
    skipped = []
    for extra_id, quantity in extra_items:
        try:
            with bounded_transaction(current_app.config["TRANSFER_TX_TIMEOUT_SECONDS"]):
                extras.transfer_extra(source, destination, extra_id, quantity)
        except Exception as exc:
            # Core stock is already committed; a failed extra never undoes it
            db.session.rollback()
            current_app.logger.warning(
                "Transfer %s: extra %s (x%s) not moved: %s", transfer_number, extra_id, quantity, exc,
                exc_info=True,
            )
            skipped.append({"extra_id": extra_id, "quantity": quantity, "reason": str(exc)})
    return skipped


def approve_transfer(transfer_id: int, user_id: int | None = None, *, ledger=None, extras=None) -> TransferResult:
    """
    Execute a pending or approved transfer.

    Returns success=False (nothing written) for insufficient stock or a
    transfer that is no longer open. Conflicts that outlast every retry
    propagate to the caller.
    """
    ledger = ledger or get_ledger()
    extras = extras or get_extras_ledger()
    config = current_app.config

    def _attempt():
        transfer = get_transfer(transfer_id)
        if transfer.status not in OPEN_STATUSES:
            raise ValidationError(f"Transfer {transfer.transfer_number} is already {transfer.status}")

        source = Scope(transfer.from_department_id)
        destination = Scope(transfer.to_department_id, transfer.to_section_id)
        transfer_number = transfer.transfer_number
        core, extra_items = _preflight(transfer, source, ledger, extras)

        # End the read phase; no transaction is held between preflight and commit.
        db.session.rollback()

        _commit_core(transfer_id, transfer_number, source, destination, core, user_id, ledger)
        return transfer_number, source, destination, extra_items

    try:
        transfer_number, source, destination, extra_items = run_with_retry(
            _attempt,
            attempts=config["TRANSFER_MAX_ATTEMPTS"],
            backoff_base=config["TRANSFER_BACKOFF_BASE_SECONDS"],
            label=f"transfer {transfer_id}",
        )
    except ValidationError as exc:
        db.session.rollback()
        return TransferResult(
            success=False,
            message=str(exc),
            transfer=get_transfer(transfer_id),
            details=exc.details,
        )

    skipped = _move_extras(transfer_number, source, destination, extra_items, extras)
    current_app.logger.info(
        "Transfer %s completed (%s extras skipped)", transfer_number, len(skipped)
    )

    message = "Transfer completed"
    if skipped:
        message = f"Transfer completed; {len(skipped)} extra item(s) could not be moved"
    return TransferResult(
        success=True,
        message=message,
        transfer=get_transfer(transfer_id),
        skipped_extras=skipped,
    )


def get_transfer_summary(transfer_id: int) -> dict:
    transfer = get_transfer(transfer_id)
    source = Scope(transfer.from_department_id)
    destination = Scope(transfer.to_department_id, transfer.to_section_id)

    items = []
    for item in transfer.items:
        row = item.to_dict()
        model = Extra if item.product_type == EXTRA_PRODUCT_TYPE else InventoryItem
        product = db.session.get(model, item.product_id)
        row["product_name"] = product.name if product else None
        items.append(row)

    movements = get_ledger().list_movements(reference=transfer.transfer_number, limit=500)
    return {
        **transfer.to_dict(),
        "from_code": describe_scope(source),
        "to_code": describe_scope(destination),
        "items": items,
        "movements": [m.to_dict() for m in reversed(movements)],
    }


def list_transfers(
    department_code: str | None = None,
    direction: str | None = None,
    status: str | None = None,
    limit: int = 100,
) -> list[Transfer]:
    """direction: 'outgoing', 'incoming' or None for both (needs department_code)."""
    if direction not in (None, "outgoing", "incoming"):
        raise ValidationError("direction must be 'outgoing' or 'incoming'")

    query = db.session.query(Transfer)
    if department_code:
        department_id = resolve_scope(department_code).scope.department_id
        if direction == "outgoing":
            query = query.filter(Transfer.from_department_id == department_id)
        elif direction == "incoming":
            query = query.filter(Transfer.to_department_id == department_id)
        else:
            query = query.filter(
                or_(Transfer.from_department_id == department_id, Transfer.to_department_id == department_id)
            )
    if status:
        query = query.filter(Transfer.status == status)

    limit = min(max(limit, 1), 500)
    return query.order_by(Transfer.id.desc()).limit(limit).all()
