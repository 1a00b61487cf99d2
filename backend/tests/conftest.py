"""
Pytest fixtures for catering backend tests.

Provides a fresh in-memory database per test, a test client, reference data
(airport, caterer, customer), and order/stock factories.
"""

import pytest

from catering import create_app
from catering.extensions import db
from catering.models import Airport, Caterer, Customer
from catering.services import order_service, stock_inventory_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'ORDER_NUMBER_PREFIX': 'KA',
    'DEFAULT_DELIVERY_CHARGE': '0.00',
    'REQUIRE_PAYMENT_FOR_COMPLETION': True,
}


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app(dict(TEST_CONFIG))

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def airport(db_session):
    """Create a delivery airport."""
    ap = Airport(name="Teterboro", fbo_name="Signature TEB", iata_code="TEB", icao_code="KTEB")
    db_session.add(ap)
    db_session.commit()
    return ap


@pytest.fixture(scope='function')
def caterer(db_session, airport):
    """Create a caterer based at the airport."""
    c = Caterer(name="Skyline Catering", email="orders@skyline.test", airport_id=airport.id)
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(first_name="Dana", last_name="Reyes", email="dana@example.com")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def make_order(db_session):
    """Factory: make_order(order_type='dine_in', **fields) -> Order."""
    def _make(order_type="dine_in", **fields):
        return order_service.create_order(order_type=order_type, **fields)
    return _make


@pytest.fixture(scope='function')
def dispatchable_order(make_order, caterer, airport):
    """Paid delivery order with caterer and airport assigned."""
    order = make_order(
        "delivery",
        caterer_id=caterer.id,
        delivery_airport_id=airport.id,
        total="100.00",
    )
    order.payment_status = "paid"
    db.session.commit()
    return order


@pytest.fixture(scope='function')
def stock_item(db_session):
    """10 x 5.00 of an active stock item."""
    return stock_inventory_service.create_stock_item(
        name="Sparkling Water",
        unit="bottle",
        category="beverages",
        quantity=10,
        unit_cost="5.00",
        minimum_quantity=4,
    )
