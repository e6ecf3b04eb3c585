# Overview: Transaction, locking and retry primitives shared by the services.

from __future__ import annotations

import random
import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from .errors import TransactionTimeoutError, TransientConflictError
from .extensions import db

# Lock contention, serialization failures and optimistic-lock conflicts.
RETRYABLE_ERRORS = (TransientConflictError, OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def backoff_delay(attempt: int, base: float) -> float:
    """Randomized delay that grows with the attempt number (1-based)."""
    return base * attempt * (0.5 + random.random())


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS,
                   label: str = "operation"):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Only exceptions in `retry_on` are retried; everything else propagates on
    the first occurrence. The session is rolled back before each new attempt
    and the last error is re-raised once attempts are exhausted.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            if attempt >= attempts:
                current_app.logger.warning(
                    "%s failed after %s attempts: %s", label, attempts, exc
                )
                raise
            delay = backoff_delay(attempt, backoff_base)
            current_app.logger.warning(
                "%s attempt %s/%s hit %s; retrying in %.3fs",
                label, attempt, attempts, type(exc).__name__, delay,
            )
            time.sleep(delay)


@contextmanager
def bounded_transaction(timeout_seconds: float, *, session=None):
    """
    Run the enclosed block as one transaction with a time budget.

    PostgreSQL enforces the budget per statement via SET LOCAL
    statement_timeout. On every backend the elapsed time is checked before
    COMMIT; an overrun rolls back and raises TransactionTimeoutError. Any
    exception rolls back and propagates.
    """
    session = session or db.session
    started = time.monotonic()
    try:
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_seconds * 1000)}"))
        yield session
        elapsed = time.monotonic() - started
        if elapsed > timeout_seconds:
            raise TransactionTimeoutError(
                f"Transaction exceeded {timeout_seconds:.1f}s (took {elapsed:.2f}s)"
            )
        session.commit()
    except Exception:
        session.rollback()
        raise
