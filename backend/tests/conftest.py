"""
Pytest fixtures for HotelOps backend tests.

Provides the in-memory application, a fresh database per test, a small
directory (KITCHEN, BAR with a pool section), stock items and role headers.
"""

import pytest

from hotelops import create_app
from hotelops.extensions import db
from hotelops.services import directory_service, stock_service
from hotelops.services.stock_service import get_ledger


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSFER_BACKOFF_BASE_SECONDS': 0.01,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_headers():
    return {"X-Roles": "admin", "X-User-Id": "1"}


@pytest.fixture(scope='function')
def staff_headers():
    return {"X-Roles": "staff", "X-User-Id": "2"}


@pytest.fixture(scope='function')
def kitchen(db_session):
    return directory_service.create_department("KITCHEN", "Main Kitchen")


@pytest.fixture(scope='function')
def bar(db_session):
    return directory_service.create_department("BAR", "Lobby Bar")


@pytest.fixture(scope='function')
def pool_section(bar):
    return directory_service.create_section("BAR", "Pool Bar", "pool")


@pytest.fixture(scope='function')
def cola(db_session):
    return stock_service.create_item("Cola 330ml", "drink", sku="COLA-330", unit_price_cents=500)


@pytest.fixture(scope='function')
def burger(db_session):
    return stock_service.create_item("Club Burger", "food", sku="BURGER", unit_price_cents=1200)


@pytest.fixture(scope='function')
def ledger(db_session):
    return get_ledger()


@pytest.fixture(scope='function')
def stock(ledger):
    """Restock helper: stock("BAR", item, 10) or stock("BAR:pool", item, 4)."""
    def _stock(scope_code, item, quantity):
        resolved = directory_service.resolve_scope(scope_code)
        ledger.restock(resolved.scope, item.id, quantity, reference="SEED")
        return resolved.scope
    return _stock


@pytest.fixture(scope='function')
def balance(ledger):
    """Current balance of an item at a scope code."""
    def _balance(scope_code, item):
        resolved = directory_service.resolve_scope(scope_code)
        return ledger.get_balance(item.id, resolved.scope)
    return _balance
