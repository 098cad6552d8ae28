"""
Pytest fixtures for the assetdesk backend tests.

Provides test database setup, an authenticated test client and small
factories for assets and invoices.
"""

import pytest
from assetdesk import create_app
from assetdesk.config import TestConfig
from assetdesk.extensions import db
from assetdesk.services import asset_service, invoice_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def auth_client(client, db_session):
    """Test client logged in as the configured administrator."""
    response = client.post('/api/auth/login', json={
        'email': TestConfig.ADMIN_EMAIL,
        'password': TestConfig.ADMIN_PASSWORD,
    })
    assert response.status_code == 200
    return client


@pytest.fixture(scope='function')
def make_asset(db_session):
    """Factory: create an asset through the service (logs its "added" movement)."""
    def _make(**overrides):
        payload = {
            "name": "Chair",
            "category": "Furniture",
            "unit_price": 500,
            "quantity": 10,
        }
        payload.update(overrides)
        return asset_service.create_asset(payload)
    return _make


@pytest.fixture(scope='function')
def make_invoice(db_session):
    """Factory: create an invoice through the engine with test numbering."""
    def _make(items, type="sale", party="Acme Ltd", **fields):
        payload = {"type": type, "items": items}
        payload["buyer" if type == "sale" else "seller"] = party
        payload.update(fields)
        return invoice_service.create_invoice(payload, number_prefix="INV", number_pad=4)
    return _make
