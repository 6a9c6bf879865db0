"""
Pytest fixtures for canteen store backend tests.

Provides test database setup, canteen/item/user fixtures, and test client.
"""

from datetime import datetime

import pytest
from canteen import create_app
from canteen.extensions import db
from canteen.models.auth import ROLE_ADMIN, ROLE_MANAGER
from canteen.models.canteens import CANTEEN_TYPE_MAIN, CANTEEN_TYPE_SUB
from canteen.models.catalog import STOCK_EFFECT_INCREASES
from canteen.services import canteen_service, catalog_service, stock_service
from canteen.services.auth_service import AuthContext, create_user


PASSWORD = "Password123!"

# Mid-day, well clear of the 02:00 business-day boundary
NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
        'BUSINESS_DAY_START_HOUR': 2,
        'CONFLICT_RETRY_BACKOFF': 0,
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
def canteen_a(db_session):
    return canteen_service.create_canteen("Main Canteen", "Block A", "555-0100", type=CANTEEN_TYPE_MAIN)


@pytest.fixture(scope='function')
def canteen_b(db_session):
    return canteen_service.create_canteen("Hostel Canteen", "Block B", "555-0200", type=CANTEEN_TYPE_SUB)


@pytest.fixture(scope='function')
def tea(db_session):
    """Ordinary item: selling it takes stock out."""
    return catalog_service.create_item("Tea", "Beverages", "cup", mrp_cents=1000)


@pytest.fixture(scope='function')
def samosa(db_session):
    return catalog_service.create_item("Samosa", "Snacks", "pcs", mrp_cents=1500)


@pytest.fixture(scope='function')
def crate(db_session):
    """Returnable container: selling it brings stock back."""
    return catalog_service.create_item(
        "Bottle crate", "Returns", "pcs", mrp_cents=500, stock_effect=STOCK_EFFECT_INCREASES
    )


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user("admin", "admin@canteen.local", PASSWORD, name="Admin", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager_a_user(db_session, canteen_a):
    return create_user("manager_a", "manager_a@canteen.local", PASSWORD, role=ROLE_MANAGER, canteen_id=canteen_a.id)


@pytest.fixture(scope='function')
def manager_b_user(db_session, canteen_b):
    return create_user("manager_b", "manager_b@canteen.local", PASSWORD, role=ROLE_MANAGER, canteen_id=canteen_b.id)


@pytest.fixture(scope='function')
def admin(admin_user):
    return AuthContext.for_user(admin_user)


@pytest.fixture(scope='function')
def manager_a(manager_a_user):
    return AuthContext.for_user(manager_a_user)


@pytest.fixture(scope='function')
def manager_b(manager_b_user):
    return AuthContext.for_user(manager_b_user)


@pytest.fixture(scope='function')
def stocked(canteen_a, tea, samosa, crate):
    """Canteen A holds 20 tea, 10 samosa and 5 crates."""
    stock_service.set_quantity(canteen_a.id, tea.id, 20, "Opening count", now=NOW)
    stock_service.set_quantity(canteen_a.id, samosa.id, 10, "Opening count", now=NOW)
    stock_service.set_quantity(canteen_a.id, crate.id, 5, "Opening count", now=NOW)
    return canteen_a


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
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


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def manager_a_headers(client, manager_a_user):
    return auth_headers(get_auth_token(client, "manager_a"))
