"""
conftest.py — Pytest fixtures for the LegalCRM backend.

Uses an in-memory SQLite database so no PostgreSQL connection is needed.
Tables are created once per session; every test builds the rows it needs
through the `make` factory with unique names, so tests do not depend on
each other's data.

Rows are created inside short-lived app contexts. Never hold an app
context open around a test-client request: the request would reuse it,
and with it g and the database session.
"""

import os
import sys
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

# Put backend on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

os.environ.setdefault("FLASK_ENV",    "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from config import Config                                       # noqa: E402
from database import db                                         # noqa: E402
from models import (                                            # noqa: E402
    User, UserRole, Client, Case, TimeEntry, TimeEntryStatus, Invoice, InvoiceItem,
    InvoiceStatus, CalendarEvent, EventType, PortalUser, RateTable,
)
from utils.auth import staff_claims, portal_claims              # noqa: E402
from utils.passwords import hash_password                       # noqa: E402

DEFAULT_PASSWORD = "password123"


class TestConfig(Config):
    TESTING                   = True
    DEBUG                     = False
    SQLALCHEMY_DATABASE_URI   = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STAFF_JWT_SECRET          = "test-staff-secret"
    PORTAL_JWT_SECRET         = "test-portal-secret"
    COOKIE_SECURE             = False
    SENDGRID_API_KEY          = ""
    LLM_API_KEY               = ""
    OBJECT_STORAGE_BUCKET     = ""
    APP_BASE_URL              = "http://testserver"


@pytest.fixture(scope="session")
def app():
    """Create the application with an in-memory SQLite database."""
    from app import create_app

    test_app = create_app(TestConfig)
    with test_app.app_context():
        import models  # noqa: F401
        db.create_all()
    yield test_app


@pytest.fixture
def client(app):
    """Anonymous test client."""
    return app.test_client()


# ─── Row factory ──────────────────────────────────────────────────────────────

def _tag() -> str:
    return uuid.uuid4().hex[:8]


class Factory:
    """Creates rows in their own app context and returns their ids."""

    _password_hash = None

    def __init__(self, app):
        self.app = app

    def _save(self, obj) -> str:
        with self.app.app_context():
            db.session.add(obj)
            db.session.commit()
            return obj.id

    def password_hash(self) -> str:
        if Factory._password_hash is None:
            Factory._password_hash = hash_password(DEFAULT_PASSWORD)
        return Factory._password_hash

    def user(self, role="attorney", is_active=True, **kw) -> str:
        tag = _tag()
        return self._save(User(
            username=kw.pop("username", f"user_{tag}"),
            email=kw.pop("email", f"user_{tag}@firm.test"),
            password_hash=self.password_hash(),
            first_name=kw.pop("first_name", "Test"),
            last_name=kw.pop("last_name", role.title()),
            role=UserRole(role),
            is_active=is_active,
            **kw,
        ))

    def client_row(self, **kw) -> str:
        tag = _tag()
        return self._save(Client(
            first_name=kw.pop("first_name", "Client"),
            last_name=kw.pop("last_name", tag),
            email=kw.pop("email", f"client_{tag}@mail.test"),
            **kw,
        ))

    def case(self, client_id=None, **kw) -> str:
        return self._save(Case(
            case_number=kw.pop("case_number", f"TEST-{_tag()}"),
            title=kw.pop("title", "Test matter"),
            case_type=kw.pop("case_type", "personal_injury"),
            client_id=client_id or self.client_row(),
            **kw,
        ))

    def time_entry(self, case_id=None, minutes=60, status="ready_to_bill", rate="250.00", **kw) -> str:
        start = kw.pop("start_time", datetime.now(timezone.utc) - timedelta(hours=2))
        running = kw.pop("running", False)
        return self._save(TimeEntry(
            case_id=case_id,
            attorney_id=kw.pop("attorney_id", None),
            activity=kw.pop("activity", "Legal Research"),
            start_time=start,
            end_time=None if running else start + timedelta(minutes=minutes),
            duration=None if running else minutes,
            hourly_rate=Decimal(rate) if rate is not None else None,
            status=TimeEntryStatus(status),
            **kw,
        ))

    def invoice(self, client_id, case_id=None, status="draft", total="100.00", items=(), **kw) -> str:
        invoice = Invoice(
            invoice_number=kw.pop("invoice_number", f"TST-{_tag()}"),
            client_id=client_id,
            case_id=case_id,
            issue_date=kw.pop("issue_date", date.today()),
            due_date=kw.pop("due_date", date.today() + timedelta(days=30)),
            subtotal=Decimal(total),
            tax=Decimal("0.00"),
            total=Decimal(total),
            status=InvoiceStatus(status),
            **kw,
        )
        invoice.items = [
            InvoiceItem(description=d, quantity=Decimal("1.00"), rate=Decimal(a), amount=Decimal(a))
            for d, a in items
        ]
        return self._save(invoice)

    def event(self, start=None, event_type="meeting", **kw) -> str:
        start = start or datetime.now(timezone.utc) + timedelta(days=1)
        return self._save(CalendarEvent(
            title=kw.pop("title", f"Event {_tag()}"),
            start_time=start,
            end_time=kw.pop("end_time", start + timedelta(hours=1)),
            event_type=EventType(event_type),
            **kw,
        ))

    def portal_user(self, client_id, is_active=True, with_password=True, **kw) -> str:
        return self._save(PortalUser(
            client_id=client_id,
            email=kw.pop("email", f"portal_{_tag()}@mail.test"),
            password_hash=self.password_hash() if with_password else None,
            first_name=kw.pop("first_name", "Portal"),
            last_name=kw.pop("last_name", "Client"),
            is_active=is_active,
            **kw,
        ))

    def rate_table(self, hourly_rate, **kw) -> str:
        return self._save(RateTable(
            name=kw.pop("name", f"Rate {_tag()}"),
            hourly_rate=Decimal(hourly_rate),
            **kw,
        ))

    def load(self, model, row_id):
        """Fetch a row; column attributes stay readable after the context closes."""
        with self.app.app_context():
            return db.session.get(model, row_id)


@pytest.fixture
def make(app):
    return Factory(app)


# ─── Authenticated clients ────────────────────────────────────────────────────

@pytest.fixture
def login_as(app, make):
    """login_as("paralegal") → test client carrying a staff session cookie."""
    def _login(role="admin", user_id=None):
        user_id = user_id or make.user(role=role)
        with app.app_context():
            user = db.session.get(User, user_id)
            token = app.extensions["staff_tokens"].issue(staff_claims(user))
        c = app.test_client()
        c.set_cookie(app.config["STAFF_COOKIE_NAME"], token)
        c.user_id = user_id
        return c
    return _login


@pytest.fixture
def admin_client(login_as):
    return login_as("admin")


@pytest.fixture
def attorney_client(login_as):
    return login_as("attorney")


@pytest.fixture
def portal_login_as(app):
    """portal_login_as(portal_user_id) → test client carrying a portal session cookie."""
    def _login(portal_user_id):
        with app.app_context():
            portal_user = db.session.get(PortalUser, portal_user_id)
            token = app.extensions["portal_tokens"].issue(portal_claims(portal_user))
        c = app.test_client()
        c.set_cookie(app.config["PORTAL_COOKIE_NAME"], token)
        c.portal_user_id = portal_user_id
        return c
    return _login
