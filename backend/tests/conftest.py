"""
Pytest fixtures for Cycle Mart backend tests.

Provides the app with an in-memory database, test client, a per-test clean
session and the common domain rows (customer, stock items, work order).
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from cyclemart import create_app
from cyclemart.extensions import db
from cyclemart.models import Customer, InventoryItem, SewingMachine, WorkOrder
from cyclemart.services.inventory_ledger import InventoryLedger
from cyclemart.services.invoice_service import InvoiceService, InvoiceSettings
from cyclemart.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
def invoice_service(app, db_session):
    return InvoiceService(
        db_session,
        InventoryLedger(db_session),
        InvoiceSettings.from_config(app.config),
    )


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(first_name="Ramesh", last_name="Patel", phone="9876500001", city="Rajkot")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def machine(db_session, customer):
    m = SewingMachine(customer_id=customer.id, brand="Usha", model="Allure")
    db_session.add(m)
    db_session.commit()
    return m


def make_item(session, *, sku, name, quantity, price, minimum_stock=2, cost=None):
    item = InventoryItem(
        sku=sku,
        name=name,
        category="Spare parts",
        type="parts",
        cost=Decimal(cost or price) / 2,
        price=Decimal(price),
        quantity=quantity,
        minimum_stock=minimum_stock,
    )
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def item_a(db_session):
    """Item A: quantity 10, minimum 2, price 100."""
    return make_item(db_session, sku="SKU-A", name="Bobbin case", quantity=10, price="100.00")


@pytest.fixture(scope='function')
def item_b(db_session):
    """Item B: a single unit left."""
    return make_item(db_session, sku="SKU-B", name="Motor belt", quantity=1, price="90.00")


@pytest.fixture(scope='function')
def completed_work_order(db_session, customer, machine):
    wo = WorkOrder(
        order_number="WO-TEST-000001",
        customer_id=customer.id,
        machine_id=machine.id,
        problem_description="Needle bar timing off",
        status="completed",
        priority="normal",
        actual_cost=Decimal("1000.00"),
        completed_at=utcnow(),
    )
    db_session.add(wo)
    db_session.commit()
    return wo


@pytest.fixture(scope='function')
def due_date():
    return (utcnow() + timedelta(days=30)).isoformat() + "Z"
