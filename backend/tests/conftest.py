"""
Pytest fixtures for the inventory backend tests.

Provides test database setup, seed locations/products/users, and test client.
"""

import pytest

from cosmo_inventory import create_app
from cosmo_inventory.extensions import db
from cosmo_inventory.models import Category, Location, Product, User
from cosmo_inventory.models.auth import ROLE_GENERAL, ROLE_MASTER, ROLE_READONLY
from cosmo_inventory.services.auth_service import hash_password

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
def warehouse(db_session):
    location = Location(name="Warehouse", code="WH", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def store(db_session):
    location = Location(name="Store", code="ST", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def skincare(db_session):
    category = Category(name="Skincare", code="SKIN", is_active=True)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def toner(db_session, skincare):
    product = Product(name="Toner", code="TN-001", category_id=skincare.id, cost_price=12000)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cream(db_session, skincare):
    product = Product(name="Cream", code="CR-001", category_id=skincare.id, cost_price=25000)
    db_session.add(product)
    db_session.commit()
    return product


def _make_user(db_session, username, role, location=None, alert_threshold=30):
    user = User(
        username=username,
        password_hash=hash_password(PASSWORD),
        role=role,
        location_id=location.id if location else None,
        alert_threshold=alert_threshold,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def master_user(db_session, warehouse):
    return _make_user(db_session, "master", ROLE_MASTER, warehouse)


@pytest.fixture(scope='function')
def general_user(db_session, store):
    """General user assigned to the Store location."""
    return _make_user(db_session, "clerk", ROLE_GENERAL, store)


@pytest.fixture(scope='function')
def readonly_user(db_session):
    return _make_user(db_session, "viewer", ROLE_READONLY)


@pytest.fixture(scope='function')
def master_headers(client, master_user):
    return auth_headers(get_auth_token(client, master_user.username, PASSWORD))


@pytest.fixture(scope='function')
def general_headers(client, general_user):
    return auth_headers(get_auth_token(client, general_user.username, PASSWORD))


@pytest.fixture(scope='function')
def readonly_headers(client, readonly_user):
    return auth_headers(get_auth_token(client, readonly_user.username, PASSWORD))


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
