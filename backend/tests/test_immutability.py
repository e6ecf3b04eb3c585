"""
Append-only guards and transaction primitive tests.
"""

import itertools
import time

import pytest
from sqlalchemy.exc import OperationalError

from hotelops.concurrency import backoff_delay, bounded_transaction, run_with_retry
from hotelops.errors import (
    ImmutabilityViolationError,
    TransactionTimeoutError,
    TransientConflictError,
    ValidationError,
)
from hotelops.models import AuditEvent, Department, FulfillmentRecord, MovementRecord
from hotelops.services import fulfillment_service, order_service
from hotelops.services.audit_service import append_audit_event, list_audit_events


class TestAppendOnly:
    def test_movement_cannot_be_updated(self, db_session, stock, bar, cola):
        stock("BAR", cola, 5)
        movement = db_session.query(MovementRecord).first()
        movement.quantity = 50
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()

    def test_movement_cannot_be_deleted(self, db_session, stock, bar, cola):
        stock("BAR", cola, 5)
        db_session.delete(db_session.query(MovementRecord).first())
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()

    def test_fulfillment_record_cannot_be_updated(self, db_session, stock, bar, cola):
        stock("BAR", cola, 5)
        order = order_service.create_order(
            None, [{"product_id": cola.id, "product_type": "drink", "department_code": "BAR", "quantity": 1}]
        )
        fulfillment_service.update_fulfillment(order.id, order.lines[0].id, "fulfilled")

        record = db_session.query(FulfillmentRecord).one()
        record.notes = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()

    def test_audit_event_cannot_be_deleted(self, db_session, bar):
        event = append_audit_event(
            event_type="test.event", event_category="test", entity_type="department", entity_id=bar.id,
        )
        db_session.commit()
        db_session.delete(event)
        with pytest.raises(ImmutabilityViolationError):
            db_session.flush()
        db_session.rollback()


class TestAuditLog:
    def test_payload_and_filters(self, db_session, bar):
        append_audit_event(
            event_type="a.one", event_category="inventory", entity_type="department", entity_id=bar.id,
            payload={"b": 2, "a": 1}, note="x" * 300,
        )
        append_audit_event(event_type="a.two", event_category="orders", entity_type="order", entity_id=1)
        db_session.commit()

        events = list_audit_events(entity_type="department", entity_id=bar.id)
        assert [e.event_type for e in events] == ["a.one"]
        assert events[0].payload == '{"a": 1, "b": 2}'
        assert len(events[0].note) == 255
        assert events[0].occurred_at is not None
        assert [e.event_type for e in list_audit_events(event_category="orders")] == ["a.two"]

    def test_rolled_back_change_leaves_no_event(self, db_session, bar):
        with pytest.raises(ValidationError):
            with bounded_transaction(5):
                append_audit_event(event_type="x", event_category="test", entity_type="department", entity_id=1)
                raise ValidationError("abort")
        assert db_session.query(AuditEvent).count() == 0


class TestBoundedTransaction:
    def test_commits_on_success(self, db_session):
        with bounded_transaction(5):
            db_session.add(Department(code="SPA", name="Spa"))
        db_session.rollback()
        assert db_session.query(Department).filter_by(code="SPA").count() == 1

    def test_overrun_rolls_back(self, db_session, monkeypatch):
        ticks = itertools.count(100.0, 0.5)
        monkeypatch.setattr(time, "monotonic", lambda: next(ticks))

        with pytest.raises(TransactionTimeoutError):
            with bounded_transaction(0.1):
                db_session.add(Department(code="GYM", name="Gym"))

        monkeypatch.undo()
        assert db_session.query(Department).filter_by(code="GYM").count() == 0


class TestRunWithRetry:
    def test_retries_transient_then_succeeds(self, db_session, monkeypatch):
        monkeypatch.setattr(time, "sleep", lambda _: None)
        calls = []

        def _op():
            calls.append(1)
            if len(calls) < 3:
                raise TransientConflictError("busy")
            return "done"

        assert run_with_retry(_op, attempts=3) == "done"
        assert len(calls) == 3

    def test_operational_error_is_retryable(self, db_session, monkeypatch):
        monkeypatch.setattr(time, "sleep", lambda _: None)
        calls = []

        def _op():
            calls.append(1)
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            run_with_retry(_op, attempts=2)
        assert len(calls) == 2

    def test_validation_error_is_not_retried(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            raise ValidationError("final")

        with pytest.raises(ValidationError):
            run_with_retry(_op, attempts=5)
        assert len(calls) == 1

    def test_backoff_grows_with_attempt(self, monkeypatch):
        monkeypatch.setattr("random.random", lambda: 0.5)
        assert backoff_delay(1, 0.2) == pytest.approx(0.2)
        assert backoff_delay(3, 0.2) == pytest.approx(0.6)
