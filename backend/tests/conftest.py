"""
Pytest fixtures for the RP business backend tests.

Provides an in-memory database, a fake identity provider, and users,
businesses and products to act on.
"""

import pytest
from rpbiz import create_app
from rpbiz.extensions import db
from rpbiz.models import Product, User
from rpbiz.services import business_service, identity_service
from rpbiz.services.identity_service import VerifiedIdentity


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'IDENTITY_PROVIDER_URL': 'https://identity.test',
        'IDENTITY_PROVIDER_API_KEY': 'anon-test-key',
        'IDENTITY_SESSION_TTL_SECONDS': 300,
        'LOW_STOCK_THRESHOLD': 5,
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
def identity_provider(monkeypatch):
    """
    Fake identity provider.

    Maps bearer tokens to identities; unknown tokens are rejected the way
    the real provider answers 401. ``calls`` records every lookup.
    """
    class FakeProvider:
        def __init__(self):
            self.tokens = {}
            self.calls = []

        def register(self, token, user):
            self.tokens[token] = VerifiedIdentity(
                user_id=user.id,
                email=user.email,
                first_name=user.first_name or "",
                last_name=user.last_name or "",
                profile_image_url=None,
            )

        def fetch(self, token, *, transport=None):
            self.calls.append(token)
            return self.tokens.get(token)

    provider = FakeProvider()
    monkeypatch.setattr(identity_service, "fetch_identity", provider.fetch)
    return provider


def _make_user(db_session, user_id, email, first_name, last_name):
    user = User(id=user_id, email=email, first_name=first_name, last_name=last_name)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session, identity_provider):
    """Business owner, authenticated with the token "owner-token"."""
    user = _make_user(db_session, "user-owner", "owner@rp.test", "Olive", "Owner")
    identity_provider.register("owner-token", user)
    return user


@pytest.fixture(scope='function')
def employee(db_session, identity_provider):
    """Second user, authenticated with "employee-token"; not a member until added."""
    user = _make_user(db_session, "user-employee", "employee@rp.test", "Eddie", "Clerk")
    identity_provider.register("employee-token", user)
    return user


@pytest.fixture(scope='function')
def stranger(db_session, identity_provider):
    """User with no relationship to any test business; token "stranger-token"."""
    user = _make_user(db_session, "user-stranger", "stranger@rp.test", "Sam", "Outsider")
    identity_provider.register("stranger-token", user)
    return user


@pytest.fixture(scope='function')
def business(db_session, owner):
    """Business owned by ``owner``, with API key and invoice counter."""
    return business_service.create_business(
        owner_id=owner.id,
        patch={"name": "Benny's Motorworks", "business_type": "garage"},
    )


@pytest.fixture(scope='function')
def other_business(db_session, stranger):
    return business_service.create_business(
        owner_id=stranger.id,
        patch={"name": "Bahama Mamas", "business_type": "nightclub"},
    )


@pytest.fixture(scope='function')
def staffed_business(db_session, business, owner, employee):
    """``business`` with ``employee`` added as a member."""
    business_service.add_employee(
        business_id=business.id,
        email=employee.email,
        role="employee",
        user_id=owner.id,
    )
    return business


@pytest.fixture(scope='function')
def product(db_session, business):
    """Product P: stock 3 at 100.00."""
    p = Product(business_id=business.id, name="Repair Kit", price_cents=10000, stock=3)
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for extra products: make_product(business, name, price_cents, stock)."""
    def _make(business, name, price_cents, stock):
        p = Product(business_id=business.id, name=name, price_cents=price_cents, stock=stock)
        db_session.add(p)
        db_session.commit()
        return p
    return _make


@pytest.fixture(scope='function')
def owner_headers(owner):
    return {"Authorization": "Bearer owner-token"}


@pytest.fixture(scope='function')
def employee_headers(employee):
    return {"Authorization": "Bearer employee-token"}


@pytest.fixture(scope='function')
def stranger_headers(stranger):
    return {"Authorization": "Bearer stranger-token"}
