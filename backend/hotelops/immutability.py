"""
ORM-level append-only enforcement.

SQLAlchemy fires before_update / before_delete before the SQL reaches the
database; the listeners below raise ImmutabilityViolationError so the flush
aborts and the transaction rolls back.

Entity              | When immutable
--------------------|---------------------------------------
MovementRecord      | always
FulfillmentRecord   | always
AuditEvent          | always
Transfer            | once status was already 'completed'

Stock counters are written with Core UPDATE statements and are not covered
here; their floor is enforced by CHECK constraints instead.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from .errors import ImmutabilityViolationError


def _reject(target, operation: str, reason: str):
    entity_type = type(target).__name__
    current_app.logger.error(
        "immutability violation blocked: %s %s %s",
        operation,
        entity_type,
        target.id,
    )
    raise ImmutabilityViolationError(entity_type, target.id, reason)


def _append_only_update(mapper, connection, target):
    _reject(target, "UPDATE", "append-only rows cannot be modified")


def _append_only_delete(mapper, connection, target):
    _reject(target, "DELETE", "append-only rows cannot be deleted")


def _check_transfer_update(mapper, connection, target):
    """
    Allow the transition into 'completed', block anything after it.

    Status history holds the previous value in .deleted when it changes and
    in .unchanged when only other columns change.
    """
    history = get_history(target, "status")
    previous = list(history.deleted) + list(history.unchanged)
    if "completed" in previous:
        _reject(target, "UPDATE", "completed transfers are immutable")


def _check_transfer_delete(mapper, connection, target):
    _reject(target, "DELETE", "transfers cannot be deleted")


_APPEND_ONLY = ("MovementRecord", "FulfillmentRecord", "AuditEvent")


def register_immutability_listeners():
    """Install the listeners once; safe to call for every app instance."""
    from . import models

    for name in _APPEND_ONLY:
        model = getattr(models, name)
        if not event.contains(model, "before_update", _append_only_update):
            event.listen(model, "before_update", _append_only_update)
        if not event.contains(model, "before_delete", _append_only_delete):
            event.listen(model, "before_delete", _append_only_delete)

    if not event.contains(models.Transfer, "before_update", _check_transfer_update):
        event.listen(models.Transfer, "before_update", _check_transfer_update)
    if not event.contains(models.Transfer, "before_delete", _check_transfer_delete):
        event.listen(models.Transfer, "before_delete", _check_transfer_delete)
