"""
Reservation tracker tests.

Verifies:
- reserve raises only the reserved counter and respects availability
- consume / release hand held units back exactly once
- Reserved units are invisible to availability checks
"""

import pytest

from hotelops.errors import InsufficientStockError, ValidationError
from hotelops.models import Reservation
from hotelops.services.reservation_service import get_tracker


class TestReserve:
    def test_reserve_holds_units_without_touching_quantity(self, db_session, stock, balance, bar, cola):
        scope = stock("BAR", cola, 10)
        reservation = get_tracker().reserve(7, cola.id, 4, scope)
        db_session.commit()

        current = balance("BAR", cola)
        assert (current.quantity, current.reserved, current.available) == (10, 4, 6)
        assert reservation.status == "reserved"
        assert reservation.scope_key == scope.key

    def test_reserve_beyond_available_fails(self, db_session, stock, balance, bar, cola):
        scope = stock("BAR", cola, 5)
        tracker = get_tracker()
        tracker.reserve(1, cola.id, 4, scope)
        db_session.commit()

        with pytest.raises(InsufficientStockError) as exc:
            tracker.reserve(2, cola.id, 2, scope)
        db_session.rollback()

        assert exc.value.details["available"] == 1
        assert balance("BAR", cola).reserved == 4

    def test_reserve_without_stock_row(self, db_session, stock, pool_section, cola):
        stock("BAR", cola, 5)
        from hotelops.services.directory_service import resolve_scope

        with pytest.raises(InsufficientStockError) as exc:
            get_tracker().reserve(1, cola.id, 1, resolve_scope("BAR:pool").scope)
        assert exc.value.details["available"] == 0

    @pytest.mark.parametrize("quantity", [0, -1, True, "3"])
    def test_reserve_rejects_bad_quantity(self, db_session, stock, bar, cola, quantity):
        scope = stock("BAR", cola, 5)
        with pytest.raises(ValidationError):
            get_tracker().reserve(1, cola.id, quantity, scope)


class TestConsumeAndRelease:
    def test_release_returns_units(self, db_session, stock, balance, bar, cola):
        scope = stock("BAR", cola, 10)
        tracker = get_tracker()
        tracker.reserve(3, cola.id, 4, scope)
        tracker.reserve(3, cola.id, 2, scope)
        db_session.commit()

        released = tracker.release(3)
        db_session.commit()

        assert released == 6
        assert balance("BAR", cola).reserved == 0
        statuses = {r.status for r in tracker.list_for_order(3)}
        assert statuses == {"released"}

    def test_release_twice_is_a_no_op(self, db_session, stock, balance, bar, cola):
        scope = stock("BAR", cola, 10)
        tracker = get_tracker()
        tracker.reserve(3, cola.id, 4, scope)
        db_session.commit()

        assert tracker.release(3) == 4
        assert tracker.release(3) == 0
        db_session.commit()
        assert balance("BAR", cola).reserved == 0

    def test_consume_filters_by_item(self, db_session, stock, balance, bar, cola, burger):
        scope = stock("BAR", cola, 10)
        stock("BAR", burger, 10)
        tracker = get_tracker()
        tracker.reserve(9, cola.id, 2, scope)
        tracker.reserve(9, burger.id, 3, scope)
        db_session.commit()

        consumed = tracker.consume(9, cola.id)
        db_session.commit()

        assert consumed == 2
        assert balance("BAR", cola).reserved == 0
        assert balance("BAR", burger).reserved == 3
        open_holds = tracker.list_for_order(9, status="reserved")
        assert [r.item_id for r in open_holds] == [burger.id]

    def test_consume_sets_timestamp(self, db_session, stock, bar, cola):
        scope = stock("BAR", cola, 10)
        tracker = get_tracker()
        tracker.reserve(4, cola.id, 1, scope)
        db_session.commit()

        tracker.consume(4, cola.id)
        db_session.commit()

        reservation = db_session.query(Reservation).filter_by(order_id=4).one()
        assert reservation.status == "consumed"
        assert reservation.consumed_at is not None
        assert reservation.released_at is None
