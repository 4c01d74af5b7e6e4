"""
Pytest fixtures for ezorder backend tests.

Provides test database setup, restaurant/user/role fixtures, ledger
helpers and authenticated test client headers.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from ezorder import create_app
from ezorder.extensions import db
from ezorder.models import CustomRole, Permission, RolePermission, Restaurant, Sale, Expense
from ezorder.models.ledger import PAYMENT_METHOD_CASH
from ezorder.services import auth_service, permission_service
from ezorder.services.record_store import ElevatedRecordStore
from ezorder.time_utils import utcnow


PASSWORD = "Password123!"

CASHIER_PERMISSIONS = ["caja.ver", "caja.abrir", "caja.cerrar", "caja.registrar_ingresos"]


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
def store(db_session):
    return ElevatedRecordStore(db_session)


@pytest.fixture(scope='function')
def permissions(store):
    """Seeded permission catalog, keyed by name."""
    permission_service.initialize_permissions(store)
    return {p.name: p for p in store.find(Permission)}


@pytest.fixture(scope='function')
def restaurant_a(store):
    restaurant = store.insert(Restaurant, {"name": "Restaurante A", "is_active": True})
    store.commit()
    return restaurant


@pytest.fixture(scope='function')
def restaurant_b(store):
    restaurant = store.insert(Restaurant, {"name": "Restaurante B", "is_active": True})
    store.commit()
    return restaurant


@pytest.fixture(scope='function')
def make_role(store, permissions):
    def _make_role(name: str, permission_names: list[str], **fields) -> CustomRole:
        role = store.insert(CustomRole, {"name": name, **fields})
        for perm_name in permission_names:
            store.insert(RolePermission, {"role_id": role.id, "permission_id": permissions[perm_name].id})
        store.commit()
        return role
    return _make_role


@pytest.fixture(scope='function')
def make_user(store):
    def _make_user(username: str, *, tier: int = 3, role=None, restaurant=None, memberships=()):
        user = auth_service.create_user(
            store,
            username=username,
            email=f"{username}@ezorder.test",
            password=PASSWORD,
            display_name=username.title(),
            role_tier_id=tier,
            custom_role_id=role.id if role else None,
            restaurant_id=restaurant.id if restaurant else None,
        )
        for membership in memberships:
            auth_service.add_restaurant_membership(store, user.id, membership.id, is_owner=True)
        return user
    return _make_user


@pytest.fixture(scope='function')
def cashier_role(make_role):
    return make_role("Cajero", CASHIER_PERMISSIONS)


@pytest.fixture(scope='function')
def super_admin(make_user, permissions):
    return make_user("superadmin", tier=1)


@pytest.fixture(scope='function')
def admin(make_user, restaurant_a, permissions):
    """Admin owning restaurant A only."""
    return make_user("admin", tier=2, memberships=[restaurant_a])


@pytest.fixture(scope='function')
def cashier(make_user, cashier_role, restaurant_a):
    """Basic-tier user with the Cajero role, home restaurant A."""
    return make_user("cajero", role=cashier_role, restaurant=restaurant_a)


@pytest.fixture(scope='function')
def basic_user(make_user, restaurant_a, permissions):
    """No custom role, home restaurant A."""
    return make_user("mesero", restaurant=restaurant_a)


@pytest.fixture(scope='function')
def add_sale(store):
    def _add_sale(restaurant, total, method=PAYMENT_METHOD_CASH, *, paid=True, created_at: datetime | None = None):
        sale = store.insert(Sale, {
            "restaurant_id": restaurant.id,
            "total": Decimal(str(total)),
            "payment_method_id": method,
            "paid": paid,
            "created_at": created_at or utcnow(),
        })
        store.commit()
        return sale
    return _add_sale


@pytest.fixture(scope='function')
def add_expense(store):
    def _add_expense(restaurant, amount, *, expense_date: datetime | None = None):
        expense = store.insert(Expense, {
            "restaurant_id": restaurant.id,
            "amount": Decimal(str(amount)),
            "description": "Gasto",
            "expense_date": expense_date or utcnow(),
        })
        store.commit()
        return expense
    return _add_expense


def get_auth_token(client, username: str, password: str = PASSWORD) -> str | None:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json["data"]["token"]
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def super_admin_headers(client, super_admin):
    return auth_headers(get_auth_token(client, super_admin.username))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, cashier.username))


@pytest.fixture(scope='function')
def basic_headers(client, basic_user):
    return auth_headers(get_auth_token(client, basic_user.username))
