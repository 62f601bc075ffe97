"""
Pytest fixtures for course shop backend tests.

Provides an in-memory SQLite app, per-test table wipe, user/course/coupon
factories and login helpers.
"""

from decimal import Decimal

import pytest
from courseshop import create_app
from courseshop.extensions import db
from courseshop.models import Coupon, Course, User
from courseshop.models.auth import ROLE_ADMIN, ROLE_USER
from courseshop.services.auth_service import hash_password

from fakes import InMemoryGateway


PASSWORD = "Password123!"

# bcrypt is slow on purpose; hash once per test session
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
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
def gateway():
    """Storage-free gateway for component tests."""
    return InMemoryGateway()


def make_user(db_session, email: str, role: str = ROLE_USER) -> User:
    user = User(email=email, name=email.split("@")[0], password_hash=_PASSWORD_HASH, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def buyer(db_session):
    return make_user(db_session, "buyer@example.com")


@pytest.fixture(scope='function')
def other_buyer(db_session):
    return make_user(db_session, "other@example.com")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user(db_session, "admin@example.com", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def make_course(db_session):
    def _make(title: str = "Course", price_cents: int | None = 1000) -> Course:
        course = Course(title=title, price_cents=price_cents, is_published=True)
        db_session.add(course)
        db_session.commit()
        return course
    return _make


@pytest.fixture(scope='function')
def make_coupon(db_session):
    def _make(code: str = "SAVE10", percent=None, amount_cents=None, **kwargs) -> Coupon:
        coupon = Coupon(
            code=code,
            discount_percent=Decimal(str(percent)) if percent is not None else None,
            discount_amount_cents=amount_cents,
            current_uses=kwargs.pop("current_uses", 0),
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db_session.add(coupon)
        db_session.commit()
        return coupon
    return _make


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def buyer_headers(client, buyer):
    return auth_headers(get_auth_token(client, buyer.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))
