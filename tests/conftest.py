"""
Shared pytest fixtures for the Tierbook test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / member: Pre-created users as {id, email, is_admin}
    - admin_headers / member_headers: X-User-Id headers for those users
"""

import pytest

from tierbook import create_app
from tierbook.models import db as _db
from tierbook.models.project import User


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        _db.create_all()
        yield
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


# ── Actors ───────────────────────────────────────────────────────────────


def _make_user(email, is_admin):
    user = User(email=email, is_admin=is_admin)
    _db.session.add(user)
    _db.session.commit()
    return user.to_dict()


@pytest.fixture()
def admin():
    return _make_user("admin@example.com", True)


@pytest.fixture()
def member():
    return _make_user("member@example.com", False)


@pytest.fixture()
def admin_headers(admin):
    return {"X-User-Id": str(admin["id"])}


@pytest.fixture()
def member_headers(member):
    return {"X-User-Id": str(member["id"])}
