"""
Pytest fixtures for print shop backend tests.

Provides test database setup, two branches with staff and customers, and a
test client.
"""

import pytest

from printshop import create_app
from printshop.extensions import db
from printshop.models import Branch, Product, User
from printshop.models.auth import ROLE_BRANCH_STAFF, ROLE_CUSTOMER, ROLE_OWNER
from printshop.services.auth_service import hash_password
from printshop.services.branch_service import build_default_config
from printshop.services import session_service


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


def _make_branch(db_session, name: str) -> Branch:
    branch = Branch(name=name)
    db_session.add(branch)
    build_default_config(branch)
    db_session.commit()
    return branch


def _make_user(db_session, username: str, role: str, branch: Branch | None = None, **fields) -> User:
    user = User(
        username=username,
        password_hash=hash_password(PASSWORD),
        role=role,
        branch_id=branch.id if branch is not None else None,
        **fields,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def branch_a(db_session):
    """Branch A with default pricing (10 per page)."""
    return _make_branch(db_session, "Branch A")


@pytest.fixture(scope='function')
def branch_b(db_session):
    """Branch B with default pricing."""
    return _make_branch(db_session, "Branch B")


@pytest.fixture(scope='function')
def owner(db_session):
    return _make_user(db_session, "owner", ROLE_OWNER)


@pytest.fixture(scope='function')
def staff_a(db_session, branch_a):
    return _make_user(db_session, "staff_a", ROLE_BRANCH_STAFF, branch_a)


@pytest.fixture(scope='function')
def staff_b(db_session, branch_b):
    return _make_user(db_session, "staff_b", ROLE_BRANCH_STAFF, branch_b)


@pytest.fixture(scope='function')
def customer_a(db_session, branch_a):
    return _make_user(db_session, "customer_a", ROLE_CUSTOMER, branch_a, credit_balance=0)


@pytest.fixture(scope='function')
def customer_b(db_session, branch_b):
    return _make_user(db_session, "customer_b", ROLE_CUSTOMER, branch_b, credit_balance=0)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for products; defaults to a 20 page AUTO document."""
    def _make(branch: Branch, **fields) -> Product:
        values = {
            "title": "Anatomy Notes",
            "pages": 20,
            "mode": "AUTO",
            "fixed_price": 0,
            "discount_type": "NONE",
            "discount_value": 0,
            "hidden": False,
        }
        values.update(fields)
        product = Product(branch_id=branch.id, **values)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


def token_for(user: User) -> str:
    """Helper to issue a session token without going through login."""
    _, token = session_service.create_session(user)
    return token


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
def headers_for(db_session):
    """Factory for Authorization headers of an existing user."""
    def _headers(user: User) -> dict:
        return auth_headers(token_for(user))

    return _headers
