"""
Operator CLI tests via Flask's CLI runner.
"""

import pytest

from hotelops.services import transfer_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestDepartmentCommands:
    def test_create_and_list(self, runner, db_session):
        result = runner.invoke(args=["departments", "create", "--code", "spa", "--name", "Spa"])
        assert "PASS Created department SPA" in result.output

        result = runner.invoke(args=["departments", "add-section", "SPA", "--name", "Treatment Rooms"])
        assert "PASS Created section SPA:treatment-rooms" in result.output

        result = runner.invoke(args=["departments", "list"])
        assert "treatment-rooms" in result.output

    def test_duplicate_reports_fail(self, runner, db_session, bar):
        result = runner.invoke(args=["departments", "create", "--code", "BAR", "--name", "Bar"])
        assert result.output.startswith("FAIL")


class TestStockCommands:
    def test_restock_and_show(self, runner, db_session, bar, cola):
        result = runner.invoke(args=[
            "stock", "restock", "--scope", "BAR", "--item-id", str(cola.id), "--quantity", "8",
        ])
        assert "PASS BAR" in result.output
        assert "quantity 8" in result.output

        result = runner.invoke(args=["stock", "show", "--scope", "BAR"])
        assert "Cola 330ml" in result.output

    def test_restock_unknown_scope(self, runner, db_session, cola):
        result = runner.invoke(args=[
            "stock", "restock", "--scope", "NOPE", "--item-id", str(cola.id), "--quantity", "1",
        ])
        assert result.output.startswith("FAIL")


class TestTransferCommands:
    def test_approve(self, runner, db_session, stock, balance, kitchen, bar, cola):
        stock("KITCHEN", cola, 5)
        transfer = transfer_service.create_transfer(
            "KITCHEN", "BAR", [{"product_type": "drink", "product_id": cola.id, "quantity": 2}]
        )

        result = runner.invoke(args=["transfers", "approve", str(transfer.id)])
        assert result.output.startswith("PASS")
        assert balance("BAR", cola).quantity == 2

        result = runner.invoke(args=["transfers", "approve", str(transfer.id)])
        assert result.output.startswith("FAIL")
