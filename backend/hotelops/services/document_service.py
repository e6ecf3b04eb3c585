# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..errors import ValidationError


ORDER_PREFIX = "ORD"
TRANSFER_PREFIX = "TRF"


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next number for a document type inside the caller's transaction.

    The counter moves with a single conditional UPDATE; the first allocation
    for a type inserts the row under a SAVEPOINT and falls back to the UPDATE
    if a concurrent writer created it first.
    """
    if not document_type:
        raise ValidationError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            return f"{prefix}-{1:0{pad}d}"
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return f"{prefix}-{current - 1:0{pad}d}"


def next_order_number() -> str:
    return next_document_number(document_type="order", prefix=ORDER_PREFIX)


def next_transfer_number() -> str:
    return next_document_number(document_type="transfer", prefix=TRANSFER_PREFIX)
