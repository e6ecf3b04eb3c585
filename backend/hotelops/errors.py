# Overview: Typed error taxonomy shared by services and routes.

from __future__ import annotations


class ValidationError(ValueError):
    """400-level input or business rule problem. Never retried."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(ValidationError):
    """A conditional decrement or reservation found too little stock."""

    def __init__(self, message: str, *, item_id=None, scope=None, requested: int | None = None,
                 available: int | None = None):
        details = {}
        if item_id is not None:
            details["item_id"] = item_id
        if scope is not None:
            details["scope"] = str(scope)
        if requested is not None:
            details["requested"] = requested
        if available is not None:
            details["available"] = available
        super().__init__(message, details)


class InvalidTransitionError(ValidationError):
    """Requested status change is not a forward transition."""


class ConflictError(ValidationError):
    """409-level business rule conflict (e.g. duplicate code)."""

    status_code = 409


class NotFoundError(LookupError):
    """Order, line, transfer, scope or item does not exist."""

    status_code = 404


class TransientConflictError(RuntimeError):
    """Lock contention or serialization conflict; eligible for retry."""

    status_code = 503


class TransactionTimeoutError(TransientConflictError):
    """An interactive transaction ran past its time budget."""


class ConcurrencyConflictError(RuntimeError):
    """Concurrent modification detected on a non-retrying path."""

    status_code = 409


class ImmutabilityViolationError(RuntimeError):
    """Attempted UPDATE/DELETE of an append-only or finalized row."""

    status_code = 409

    def __init__(self, entity_type: str, entity_id, reason: str):
        super().__init__(f"{entity_type} {entity_id}: {reason}")
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
