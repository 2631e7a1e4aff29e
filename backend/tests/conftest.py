"""
Pytest fixtures for mnepos backend tests.

Each test gets its own SQLite file (WAL mode and file-level backups need a
real file), an application bound to it, and a test client.
"""

import pytest

from mnepos import create_app
from mnepos.extensions import db
from mnepos.models import Product
from mnepos.services import maintenance_service


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing against a fresh database file."""
    db_path = tmp_path / "data" / "app.db"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'BACKUP_DIR': str(tmp_path / "backups"),
        'BACKUP_SCHEDULER_ENABLED': False,
        'AUTO_CREATE_SCHEMA': True,
    })

    with app.app_context():
        yield app
        db.session.remove()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def db_path(app):
    return maintenance_service.database_path()


@pytest.fixture(scope='function')
def backup_dir(app):
    return app.config['BACKUP_DIR']


@pytest.fixture(scope='function')
def products(db_session):
    """Two menu items used by the end-to-end bill scenarios."""
    rows = [
        Product(name="Chicken Shawarma", price_cents=15000),
        Product(name="Mint Lemonade", price_cents=5000),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


@pytest.fixture(scope='function')
def make_payload():
    """Build a create-bill body; defaults to 2 x 15000 + 1 x 5000 at 500 bps, cash."""
    def _make(**overrides):
        payload = {
            "items": [
                {"product_id": 1, "product_name": "Chicken Shawarma", "unit_price_cents": 15000, "qty": 2},
                {"product_id": 2, "product_name": "Mint Lemonade", "unit_price_cents": 5000, "qty": 1},
            ],
            "discount_rate_bps": 500,
            "payment_mode": "cash",
        }
        payload.update(overrides)
        return payload
    return _make
