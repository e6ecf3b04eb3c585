"""
Order entry and lifecycle tests.

Verifies:
- Orders are numbered, priced and reserve stock atomically
- Line edits keep reservations and totals in step
- Line numbers are never reused
- cancel / refund / complete transitions
"""

import pytest

from hotelops.errors import InsufficientStockError, NotFoundError, ValidationError
from hotelops.models import AuditEvent, Order, OrderDepartment
from hotelops.services import fulfillment_service, order_service
from hotelops.services.reservation_service import get_tracker


def _item(product, department_code="BAR", quantity=1, **extra):
    data = {
        "product_id": product.id,
        "product_type": product.item_type,
        "department_code": department_code,
        "quantity": quantity,
    }
    data.update(extra)
    return data


@pytest.fixture
def stocked(stock, bar, kitchen, cola, burger):
    stock("BAR", cola, 10)
    stock("KITCHEN", burger, 5)


# =============================================================================
# CREATE
# =============================================================================


class TestCreateOrder:
    def test_numbers_prices_and_reserves(self, db_session, stocked, balance, cola, burger):
        order = order_service.create_order(
            "ROOM-101",
            [_item(cola, quantity=2), _item(burger, "KITCHEN", quantity=1)],
            tax=170,
            user_id=3,
        )

        assert order.order_number == "ORD-000001"
        assert [line.line_number for line in order.lines] == [1, 2]
        assert order.subtotal_cents == 2 * 500 + 1200
        assert order.total_cents == 2370
        assert balance("BAR", cola).reserved == 2
        assert balance("KITCHEN", burger).reserved == 1
        assert {d.department_id for d in order.departments} == {
            order.lines[0].department_id, order.lines[1].department_id
        }
        assert db_session.query(AuditEvent).filter_by(event_type="order.created", entity_id=order.id).count() == 1

    def test_explicit_price_overrides_catalogue(self, db_session, stocked, cola):
        order = order_service.create_order(None, [_item(cola, quantity=3, unit_price_cents=450)])
        assert order.subtotal_cents == 1350

    def test_failed_reservation_aborts_whole_order(self, db_session, stocked, balance, cola, burger):
        with pytest.raises(InsufficientStockError):
            order_service.create_order(
                None, [_item(cola, quantity=2), _item(burger, "KITCHEN", quantity=6)]
            )

        assert db_session.query(Order).count() == 0
        assert balance("BAR", cola).reserved == 0

    def test_sequential_numbers(self, db_session, stocked, cola):
        first = order_service.create_order(None, [_item(cola)])
        second = order_service.create_order(None, [_item(cola)])
        assert (first.order_number, second.order_number) == ("ORD-000001", "ORD-000002")

    @pytest.mark.parametrize(
        "items",
        [
            [],
            [{"product_type": "drink", "department_code": "BAR", "quantity": 1}],
            [{"product_id": 1, "product_type": "drink", "department_code": "BAR", "quantity": 0}],
            [{"product_id": 1, "product_type": "service", "department_code": "BAR", "quantity": 1,
              "unit_price_cents": 100}],
        ],
    )
    def test_invalid_items(self, db_session, stocked, items):
        with pytest.raises(ValidationError):
            order_service.create_order(None, items)

    def test_unknown_department(self, db_session, stocked, cola):
        with pytest.raises(NotFoundError):
            order_service.create_order(None, [_item(cola, "SPA")])

    def test_discount_above_subtotal(self, db_session, stocked, cola):
        with pytest.raises(ValidationError):
            order_service.create_order(None, [_item(cola)], discount_total=501)


# =============================================================================
# LINE EDITS
# =============================================================================


class TestLineEdits:
    def test_add_line(self, db_session, stocked, balance, cola, burger):
        order = order_service.create_order(None, [_item(cola)])
        line = order_service.add_line(order.id, _item(burger, "KITCHEN", quantity=2))

        order = order_service.get_order(order.id)
        assert line.line_number == 2
        assert order.subtotal_cents == 500 + 2400
        assert balance("KITCHEN", burger).reserved == 2

    def test_update_quantity_moves_reservation(self, db_session, stocked, balance, cola):
        order = order_service.create_order(None, [_item(cola, quantity=2)])
        line = order.lines[0]

        order_service.update_line_quantity(order.id, line.id, 5)

        order = order_service.get_order(order.id)
        assert order.subtotal_cents == 2500
        assert balance("BAR", cola).reserved == 5
        holds = get_tracker().list_for_order(order.id)
        assert [(h.quantity, h.status) for h in holds] == [(2, "released"), (5, "reserved")]

    def test_update_quantity_beyond_stock_keeps_old_hold(self, db_session, stocked, balance, cola):
        order = order_service.create_order(None, [_item(cola, quantity=2)])

        with pytest.raises(InsufficientStockError):
            order_service.update_line_quantity(order.id, order.lines[0].id, 11)

        assert balance("BAR", cola).reserved == 2
        assert order_service.get_order(order.id).lines[0].quantity == 2

    def test_remove_line_releases_and_numbers_are_not_reused(self, db_session, stocked, balance, cola, burger):
        order = order_service.create_order(None, [_item(cola, quantity=2), _item(burger, "KITCHEN")])
        kitchen_line = order.lines[1]

        order_service.remove_line(order.id, kitchen_line.id)
        order = order_service.get_order(order.id)
        assert [line.line_number for line in order.lines] == [1]
        assert order.subtotal_cents == 1000
        assert balance("KITCHEN", burger).reserved == 0
        assert db_session.query(OrderDepartment).filter_by(order_id=order.id).count() == 1

        added = order_service.add_line(order.id, _item(burger, "KITCHEN"))
        assert added.line_number == 3

    def test_cannot_remove_last_line(self, db_session, stocked, cola):
        order = order_service.create_order(None, [_item(cola)])
        with pytest.raises(ValidationError):
            order_service.remove_line(order.id, order.lines[0].id)

    def test_lines_frozen_once_processing(self, db_session, stocked, cola, burger):
        order = order_service.create_order(None, [_item(cola), _item(burger, "KITCHEN")])
        fulfillment_service.update_fulfillment(order.id, order.lines[0].id, "processing")

        with pytest.raises(ValidationError):
            order_service.add_line(order.id, _item(cola))


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestLifecycle:
    def test_cancel_releases_reservations(self, db_session, stocked, balance, cola, burger):
        order = order_service.create_order(None, [_item(cola, quantity=4), _item(burger, "KITCHEN", quantity=2)])

        order = order_service.cancel_order(order.id, "guest left")

        assert order.status == "cancelled"
        assert balance("BAR", cola).reserved == 0
        assert balance("KITCHEN", burger).reserved == 0
        assert {d.status for d in order.departments} == {"cancelled"}

    def test_cancel_twice_is_rejected(self, db_session, stocked, cola):
        order = order_service.create_order(None, [_item(cola)])
        order_service.cancel_order(order.id)
        with pytest.raises(ValidationError):
            order_service.cancel_order(order.id)

    def test_fulfilled_order_refunds_then_stays_refunded(self, db_session, stocked, cola):
        order = order_service.create_order(None, [_item(cola)])
        fulfillment_service.update_fulfillment(order.id, order.lines[0].id, "fulfilled")

        with pytest.raises(ValidationError):
            order_service.cancel_order(order.id)

        order = order_service.refund_order(order.id, "spilled")
        assert (order.status, order.payment_status) == ("refunded", "refunded")
        with pytest.raises(ValidationError):
            order_service.refund_order(order.id)

    def test_complete_requires_fulfilled(self, db_session, stocked, cola):
        order = order_service.create_order(None, [_item(cola)])
        with pytest.raises(ValidationError):
            order_service.complete_order(order.id)

        fulfillment_service.update_fulfillment(order.id, order.lines[0].id, "fulfilled")
        assert order_service.complete_order(order.id).status == "completed"

    def test_apply_discount(self, db_session, stocked, cola):
        order = order_service.create_order(None, [_item(cola, quantity=2)], tax=100)
        order = order_service.apply_discount(order.id, 300)
        assert order.total_cents == 1000 - 300 + 100

        with pytest.raises(ValidationError):
            order_service.apply_discount(order.id, 1001)

    def test_summary_and_listing(self, db_session, stocked, cola, burger):
        order = order_service.create_order(None, [_item(cola), _item(burger, "KITCHEN")])
        fulfillment_service.update_fulfillment(order.id, order.lines[0].id, "fulfilled")

        summary = order_service.get_order_summary(order.id)
        assert summary["summary"]["fulfilled_lines"] == 1
        assert summary["summary"]["fulfillment_percentage"] == 50
        assert summary["derived_status"] == "processing"
        assert len(summary["lines"][0]["fulfillments"]) == 1

        orders, total = order_service.list_orders(department_code="KITCHEN")
        assert total == 1
        assert orders[0].id == order.id
        assert order_service.list_orders(status="cancelled") == ([], 0)
