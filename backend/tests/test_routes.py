"""
HTTP surface tests.

Verifies:
- Capability checks (403 without a suitable role)
- Typed service errors map to 400 / 404 / 409
- End-to-end order fulfillment and transfer approval over the API
"""

import pytest

from hotelops.services import extras_service


# =============================================================================
# AUTHORIZATION
# =============================================================================


class TestCapabilities:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("PUT", "/api/orders/1/fulfillment"),
            ("POST", "/api/transfers"),
            ("POST", "/api/transfers/1/approve"),
            ("POST", "/api/inventory/restock"),
            ("GET", "/api/departments"),
        ],
    )
    def test_requires_role(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path, json={})
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_staff_cannot_approve_transfers(self, client, db_session, staff_headers):
        resp = client.post("/api/transfers/1/approve", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_capability"] == "approve_transfers"

    def test_custom_authorizer(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "AUTHORIZER", lambda req, capability: capability == "view_operations")
        assert client.get("/api/orders").status_code == 200
        assert client.post("/api/orders", json={}).status_code == 403


# =============================================================================
# ORDERS + FULFILLMENT
# =============================================================================


class TestOrderRoutes:
    def test_order_fulfillment_flow(self, client, db_session, admin_headers, staff_headers, stock, bar, cola, burger):
        stock("BAR", cola, 10)
        stock("BAR", burger, 5)

        resp = client.post("/api/orders", headers=staff_headers, json={
            "customer_ref": "ROOM-12",
            "items": [
                {"product_id": cola.id, "product_type": "drink", "department_code": "BAR",
                 "quantity": 3, "unit_price_cents": 500},
                {"product_id": burger.id, "product_type": "food", "department_code": "BAR",
                 "quantity": 1, "unit_price_cents": 1200},
            ],
        })
        assert resp.status_code == 201
        order = resp.get_json()
        assert order["subtotal_cents"] == 2700
        assert order["summary"]["total_lines"] == 2

        for line in order["lines"]:
            resp = client.put(
                f"/api/orders/{order['id']}/fulfillment",
                headers=staff_headers,
                json={"line_id": line["id"], "status": "fulfilled"},
            )
            assert resp.status_code == 200

        body = client.get(f"/api/orders/{order['id']}/fulfillment", headers=staff_headers).get_json()
        assert body["status"] == "fulfilled"
        assert body["summary"]["fulfillment_percentage"] == 100

        movements = client.get(
            f"/api/inventory/movements?reference={order['order_number']}", headers=staff_headers
        ).get_json()["movements"]
        assert len(movements) == 2

    def test_regression_is_400(self, client, db_session, staff_headers, stock, bar, cola):
        stock("BAR", cola, 10)
        order = client.post("/api/orders", headers=staff_headers, json={
            "items": [{"product_id": cola.id, "product_type": "drink", "department_code": "BAR", "quantity": 1}],
        }).get_json()
        line_id = order["lines"][0]["id"]
        url = f"/api/orders/{order['id']}/fulfillment"

        assert client.put(url, headers=staff_headers, json={"line_id": line_id, "status": "fulfilled"}).status_code == 200
        resp = client.put(url, headers=staff_headers, json={"line_id": line_id, "status": "processing"})
        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"from": "fulfilled", "to": "processing"}

    def test_insufficient_stock_is_400(self, client, db_session, staff_headers, stock, bar, cola):
        stock("BAR", cola, 1)
        resp = client.post("/api/orders", headers=staff_headers, json={
            "items": [{"product_id": cola.id, "product_type": "drink", "department_code": "BAR", "quantity": 2}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["details"]["available"] == 1

    def test_missing_order_is_404(self, client, db_session, staff_headers):
        resp = client.put("/api/orders/999/fulfillment", headers=staff_headers,
                          json={"line_id": 1, "status": "fulfilled"})
        assert resp.status_code == 404

    def test_non_integer_quantity_is_400(self, client, db_session, staff_headers, stock, bar, cola):
        stock("BAR", cola, 10)
        order = client.post("/api/orders", headers=staff_headers, json={
            "items": [{"product_id": cola.id, "product_type": "drink", "department_code": "BAR", "quantity": 3}],
        }).get_json()
        resp = client.put(f"/api/orders/{order['id']}/fulfillment", headers=staff_headers, json={
            "line_id": order["lines"][0]["id"], "status": "processing", "fulfilled_quantity": 1.5,
        })
        assert resp.status_code == 400

    def test_cancel_releases_via_api(self, client, db_session, staff_headers, stock, balance, bar, cola):
        stock("BAR", cola, 10)
        order = client.post("/api/orders", headers=staff_headers, json={
            "items": [{"product_id": cola.id, "product_type": "drink", "department_code": "BAR", "quantity": 4}],
        }).get_json()

        resp = client.post(f"/api/orders/{order['id']}/cancel", headers=staff_headers, json={"reason": "walk-out"})

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "cancelled"
        reservations = client.get(f"/api/orders/{order['id']}/reservations", headers=staff_headers).get_json()
        assert [r["status"] for r in reservations["reservations"]] == ["released"]
        assert balance("BAR", cola).reserved == 0


# =============================================================================
# TRANSFERS + INVENTORY
# =============================================================================


class TestTransferRoutes:
    def test_create_and_approve(self, client, db_session, admin_headers, stock, kitchen, pool_section, cola):
        stock("KITCHEN", cola, 10)

        resp = client.post("/api/transfers", headers=admin_headers, json={
            "from": "KITCHEN",
            "to": "BAR:pool",
            "items": [{"product_type": "drink", "product_id": cola.id, "quantity": 6}],
        })
        assert resp.status_code == 201
        transfer = resp.get_json()
        assert transfer["to_code"] == "BAR:pool"

        resp = client.post(f"/api/transfers/{transfer['id']}/approve", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["transfer"]["status"] == "completed"

        availability = client.get(
            f"/api/inventory/availability?item_type=drink&item_id={cola.id}&scope=BAR:pool&quantity=6",
            headers=admin_headers,
        ).get_json()
        assert availability["has_stock"] is True

        again = client.post(f"/api/transfers/{transfer['id']}/approve", headers=admin_headers)
        assert again.status_code == 400
        assert again.get_json()["success"] is False

    def test_insufficient_transfer_is_400(self, client, db_session, admin_headers, stock, kitchen, bar, cola):
        stock("KITCHEN", cola, 2)
        transfer = client.post("/api/transfers", headers=admin_headers, json={
            "from": "KITCHEN", "to": "BAR",
            "items": [{"product_type": "drink", "product_id": cola.id, "quantity": 6}],
        }).get_json()

        resp = client.post(f"/api/transfers/{transfer['id']}/approve", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()["transfer"]["status"] == "pending"

    def test_list_transfers_by_direction(self, client, db_session, admin_headers, kitchen, bar, cola):
        client.post("/api/transfers", headers=admin_headers, json={
            "from": "KITCHEN", "to": "BAR",
            "items": [{"product_type": "drink", "product_id": cola.id, "quantity": 1}],
        })

        incoming = client.get("/api/transfers?department=BAR&direction=incoming", headers=admin_headers).get_json()
        outgoing = client.get("/api/transfers?department=BAR&direction=outgoing", headers=admin_headers).get_json()
        assert len(incoming["transfers"]) == 1
        assert outgoing["transfers"] == []

    def test_restock_and_balances(self, client, db_session, admin_headers, bar, cola):
        resp = client.post("/api/inventory/restock", headers=admin_headers, json={
            "scope": "BAR", "item_id": cola.id, "quantity": 12, "reference": "PO-1",
        })
        assert resp.status_code == 201

        balances = client.get("/api/inventory/balances?scope=BAR", headers=admin_headers).get_json()["balances"]
        assert [(b["item_id"], b["quantity"]) for b in balances] == [(cola.id, 12)]

    def test_duplicate_department_is_409(self, client, db_session, admin_headers, bar):
        resp = client.post("/api/departments", headers=admin_headers, json={"code": "BAR", "name": "Again"})
        assert resp.status_code == 409

    def test_extras_summary(self, client, db_session, admin_headers, pool_section):
        extra = extras_service.create_extra("Straws", track_inventory=True)
        resp = client.post(f"/api/extras/{extra.id}/allocate", headers=admin_headers,
                           json={"scope": "BAR:pool", "quantity": 3})
        assert resp.status_code == 201

        summary = client.get("/api/extras/summary?scope=BAR:pool", headers=admin_headers).get_json()
        assert [row["extra_name"] for row in summary["low_stock"]] == ["Straws"]

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"

    def test_audit_events_since_filter(self, client, db_session, admin_headers):
        client.post("/api/departments", headers=admin_headers, json={"code": "SPA", "name": "Spa"})

        recent = client.get("/api/departments/audit-events?since=2000-01-01T00:00:00Z", headers=admin_headers)
        future = client.get("/api/departments/audit-events?since=2999-01-01T00:00:00Z", headers=admin_headers)
        bad = client.get("/api/departments/audit-events?since=yesterday", headers=admin_headers)

        assert recent.status_code == 200
        assert future.get_json()["events"] == []
        assert bad.status_code == 400
