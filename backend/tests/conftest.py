"""
Pytest fixtures for garage_books backend tests.

Provides the in-memory app, a clean database per test, a RecordStore, party
and product factories, and a scripted sync adapter.
"""

from decimal import Decimal

import pytest

from garage_books import create_app
from garage_books.extensions import db
from garage_books.models import Customer, Job, Labour, Product, Supplier, Vendor
from garage_books.services.record_store import RecordStore
from garage_books.services.sync_adapters import SyncAdapter, SyncResult


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SYNC_AUTOSTART': False,
        'SYNC_REMOTE_URL': None,
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
def store(db_session):
    return RecordStore(db_session)


def _add(session, record):
    session.add(record)
    session.commit()
    return record


@pytest.fixture(scope='function')
def supplier(db_session):
    return _add(db_session, Supplier(name="Apex Spares", gstin="29ABCDE1234F1Z5", opening_balance=Decimal("0")))


@pytest.fixture(scope='function')
def customer(db_session):
    return _add(db_session, Customer(name="Ravi Kumar", phone="9876543210", opening_balance=Decimal("0")))


@pytest.fixture(scope='function')
def vendor(db_session):
    return _add(db_session, Vendor(name="Shine Paint Works", service_type="painting", opening_balance=Decimal("0")))


@pytest.fixture(scope='function')
def technician(db_session):
    """Salaried technician paid by the hour."""
    return _add(db_session, Labour(name="Suresh", hourly_rate=Decimal("200"), is_contractor=False))


@pytest.fixture(scope='function')
def contractor(db_session):
    """Contract worker paid by the day."""
    return _add(db_session, Labour(name="Imran", daily_rate=Decimal("1200"), is_contractor=True))


@pytest.fixture(scope='function')
def widget(db_session):
    return _add(db_session, Product(
        sku="WIDGET", name="widget", rate=Decimal("150"), purchase_rate=Decimal("100"),
        current_stock=Decimal("0"),
    ))


@pytest.fixture(scope='function')
def brake_pad(db_session):
    return _add(db_session, Product(
        sku="BP-01", name="Brake pad", rate=Decimal("900"), purchase_rate=Decimal("600"),
        current_stock=Decimal("0"),
    ))


@pytest.fixture(scope='function')
def job(db_session, customer):
    return _add(db_session, Job(job_no="JOB-001", customer_id=customer.id, vehicle_no="KA01AB1234"))


class ScriptedSyncAdapter(SyncAdapter):
    """
    Test double: returns scripted results in order, then repeats the last one.

    Entries may be SyncResult objects, exceptions (raised) or callables taking
    the operation.
    """

    def __init__(self, *script):
        self.script = list(script) or [SyncResult.ok(server_version="v1")]
        self.sent = []

    def send(self, operation):
        self.sent.append(operation.op_id)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(operation)
        return step


@pytest.fixture
def scripted_adapter():
    return ScriptedSyncAdapter
