"""
Shared pytest fixtures for the office supplies test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - session: Per-test create_all / drop_all inside an app context (autouse)
    - client: Flask test client
    - admin, manager, it_manager, employee, other_employee: users
    - item / cheap_item: inventory items
    - workflow: the RequestWorkflow registered on the app
    - login_as(client, user): put a user in the client's session
"""

from datetime import datetime
from decimal import Decimal

import pytest
from flask import g
from flask.testing import FlaskClient

from supplies import create_app
from supplies.extensions import db as _db
from supplies.models import Item, Role, User, UserStatus
from supplies.workflow import EXTENSION_KEY as WORKFLOW_KEY

PASSWORD = "secret123"


class _Client(FlaskClient):
    """Test client that forgets Flask-Login's cached user between calls.

    The app context (and therefore ``g``) is shared with the test body, so
    without this every request would see the first user loaded.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.test_client_class = _Client
    return application


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: fresh tables inside an open app context."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def workflow(app):
    return app.extensions[WORKFLOW_KEY]


# ── Helpers ──────────────────────────────────────────────────────────────


def make_user(email, role, department, *, created_at=None, status=UserStatus.ACTIVE, name=None):
    user = User(
        email=email,
        name=name or email.split("@")[0],
        role=role,
        department=department,
        status=status,
    )
    if created_at is not None:
        user.created_at = created_at
    user.set_password(PASSWORD)
    _db.session.add(user)
    _db.session.commit()
    return user


def make_item(reference, unit_price, *, department="Sales", stock=10, min_stock=2, name=None):
    item = Item(
        reference=reference,
        name=name or reference,
        department=department,
        unit_price=Decimal(unit_price),
        current_stock=stock,
        min_stock=min_stock,
    )
    _db.session.add(item)
    _db.session.commit()
    return item


def login_as(client, user):
    with client.session_transaction() as sess:
        sess["_user_id"] = user.id
        sess["_fresh"] = True


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def admin():
    return make_user("admin@company.com", Role.ADMIN, "Administration", created_at=datetime(2024, 1, 1))


@pytest.fixture()
def manager():
    """Sales manager; the oldest manager account, so the default level-1 approver."""
    return make_user("manager.sales@company.com", Role.MANAGER, "Sales", created_at=datetime(2024, 1, 2))


@pytest.fixture()
def it_manager():
    return make_user("manager.it@company.com", Role.MANAGER, "IT", created_at=datetime(2024, 1, 3))


@pytest.fixture()
def employee():
    return make_user("employee.x@company.com", Role.EMPLOYEE, "Sales", created_at=datetime(2024, 1, 4))


@pytest.fixture()
def other_employee():
    return make_user("employee.y@company.com", Role.EMPLOYEE, "Sales", created_at=datetime(2024, 1, 5))


@pytest.fixture()
def item():
    return make_item("PAP-A4", "10.00", name="A4 Copy Paper")


@pytest.fixture()
def cheap_item():
    return make_item("PEN-001", "2.50", name="Ballpoint Pen")
