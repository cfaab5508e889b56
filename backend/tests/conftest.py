"""
Pytest fixtures for stock ledger backend tests.

Provides test database setup, owner/token fixtures, product factories and the
test client.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Invoice, InvoiceLineItem
from stockledger.services import owner_service, products_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONFLICT_RETRY_BACKOFF': 0,
        'FEED_POLL_INTERVAL_SECONDS': 0,
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
def owner_and_token(db_session):
    """Owner A and its plaintext API token."""
    return owner_service.create_owner("Owner A - Ali Traders", email="ali@example.com")


@pytest.fixture(scope='function')
def owner(owner_and_token):
    return owner_and_token[0]


@pytest.fixture(scope='function')
def auth_headers(owner_and_token):
    """Authorization headers for owner A."""
    return {'Authorization': f'Bearer {owner_and_token[1]}'}


@pytest.fixture(scope='function')
def other_owner_and_token(db_session):
    """Owner B, a second business that must never see owner A's rows."""
    return owner_service.create_owner("Owner B - Bilal Store")


@pytest.fixture(scope='function')
def make_product(db_session, owner):
    """Factory: create a product for owner A through the service layer."""
    def _make(name_en="Rice", owner_id=None, **fields):
        patch = {
            "name_en": name_en,
            "purchase_price_cents": 0,
            "sale_price_cents": 0,
            "partner_price_cents": 0,
            "my_stock": 0,
            "partner_stock": 0,
        }
        patch.update(fields)
        return products_service.create_product(owner_id=owner_id or owner.id, patch=patch)

    return _make


@pytest.fixture(scope='function')
def make_invoice(db_session, owner):
    """Factory: store an unpaid invoice directly, bypassing settlement."""
    def _make(lines, invoice_number="INV-001", **fields):
        invoice = Invoice(
            owner_id=owner.id,
            name=fields.pop("name", "Invoice"),
            invoice_number=invoice_number,
            is_paid=False,
            **fields,
        )
        for position, line in enumerate(lines):
            invoice.line_items.append(InvoiceLineItem(position=position, **line))
        db_session.add(invoice)
        db_session.commit()
        return invoice

    return _make
