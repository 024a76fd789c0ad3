"""
Shared pytest fixtures for the pharmacoeconomic workflow test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - session: Per-test app context with table recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user: factory for accounts of any role
    - admin / user / it_specialist / quality_evaluator: one account per role
    - auth_headers: callable minting a bearer header for a user
"""

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import (
    ROLE_ADMIN,
    ROLE_IT_SPECIALIST,
    ROLE_QUALITY_EVALUATOR,
    ROLE_USER,
)
from app.services.jwt_service import generate_access_token
from app.services.user_service import create_user


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        _db.create_all()
        yield
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Accounts ─────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: make_user(role=..., name=..., email=...) -> User."""
    counter = {"n": 0}

    def _make(role=ROLE_USER, name=None, email=None, password="secret123"):
        counter["n"] += 1
        n = counter["n"]
        return create_user(
            name or f"{role.title()} {n}",
            email or f"{role.lower()}{n}@example.com",
            password,
            role=role,
        )

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user(ROLE_ADMIN, name="Admin Adminas")


@pytest.fixture()
def user(make_user):
    return make_user(ROLE_USER, name="Jonas Jonaitis")


@pytest.fixture()
def it_specialist(make_user):
    return make_user(ROLE_IT_SPECIALIST, name="Ieva IT")


@pytest.fixture()
def quality_evaluator(make_user):
    return make_user(ROLE_QUALITY_EVALUATOR, name="Kostas QE")


@pytest.fixture()
def auth_headers():
    """auth_headers(user) -> {"Authorization": "Bearer ..."}"""

    def _headers(account):
        token = generate_access_token(account.id, account.role, account.name)
        return {"Authorization": f"Bearer {token}"}

    return _headers
