"""
conftest.py — Shared Test Fixtures for Trade Desk

Provides an in-memory SQLite database, FastAPI TestClient with auth and
collaborator overrides, recording fake senders, local object storage in a
temp dir, and factory fixtures for the master data and inquiries.

Business Rules:
- All tests run against an isolated in-memory DB
- Auth is overridden so tests don't need a session cookie
- PDF conversion is patched out (WeasyPrint needs system libraries)
- No test talks to Graph or WhatsApp; senders are fakes

Called by: all test files via pytest autodiscovery
Depends on: tradedesk.models (Base), tradedesk.database (get_db), tradedesk.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing tradedesk modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "local"

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tradedesk.database import _make_datetimes_aware
from tradedesk.exceptions import ChannelDeliveryError
from tradedesk.models import (
    Base,
    Customer,
    Inquiry,
    InquiryResult,
    InquiryStatus,
    Site,
    Supplier,
    Unit,
    User,
)
from tradedesk.services.status_registry import reset_status_registry
from tradedesk.services.storage import LocalObjectStorage

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
event.listen(TestSessionLocal, "loaded_as_persistent", _make_datetimes_aware)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _fresh_status_registry():
    reset_status_registry()
    yield
    reset_status_registry()


@pytest.fixture(autouse=True)
def fake_pdf():
    """Replace WeasyPrint conversion; yields the mock so tests can read the HTML."""
    with patch(
        "tradedesk.services.document_service.html_to_pdf", return_value=b"%PDF-1.4 fake"
    ) as mock_pdf:
        yield mock_pdf


@pytest.fixture()
def statuses(db_session: Session) -> dict:
    rows = {
        "open": InquiryStatus(name="Open"),
        "submitted": InquiryStatus(name="Submitted"),
        "cancelled": InquiryStatus(name="Cancelled"),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture()
def lost_result(db_session: Session) -> InquiryResult:
    result = InquiryResult(name="Lost")
    db_session.add(result)
    db_session.commit()
    return result


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """The operator performing dispatches."""
    user = User(
        email="operator@mte-trading.com",
        name="Asha Operator",
        mobile="+91 98200 00001",
        whatsapp="+91 98200 00001",
        role="user",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def rep_user(db_session: Session) -> User:
    """Front person representative (FPR) assigned to inquiries."""
    user = User(
        email="rep@mte-trading.com",
        name="Ravi Rep",
        mobile="+91 98200 00002",
        whatsapp="+91 98200 00002",
        role="user",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def supplier(db_session: Session) -> Supplier:
    s = Supplier(
        name="Kirloskar Valves",
        email="sales@kirloskarvalves.com",
        email2="quotes@kirloskarvalves.com",
        whatsapp="+91 90000 11111",
        mobile="+91 90000 22222",
    )
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture()
def customer(db_session: Session) -> Customer:
    c = Customer(
        name="Tata Steel",
        contact_email="purchase@tatasteel.com",
        contact_mobile="+91 90000 33333",
    )
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture()
def site(db_session: Session, customer: Customer) -> Site:
    s = Site(customer_id=customer.id, name="Jamshedpur")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture()
def units(db_session: Session) -> dict:
    rows = {"nos": Unit(name="NOS"), "kg": Unit(name="KG")}
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture()
def make_inquiry(db_session, statuses, rep_user, supplier, customer, units):
    """Factory for open inquiries; created_at increases with every call."""
    counter = itertools.count(1)

    def _make(**overrides) -> Inquiry:
        n = next(counter)
        fields = dict(
            item_code=f"ITEM-{n:03d}",
            status_id=statuses["open"].id,
            supplier_id=supplier.id,
            customer_id=customer.id,
            sales_description=f"Gate valve {n}",
            sales_unit_id=units["nos"].id,
            quantity=Decimal("2"),
            size="DN50 PN16",
            representative_id=rep_user.id,
            created_at=BASE_TIME + timedelta(minutes=n),
        )
        fields.update(overrides)
        inquiry = Inquiry(**fields)
        db_session.add(inquiry)
        db_session.commit()
        return inquiry

    return _make


@pytest.fixture()
def make_offered_inquiry(make_inquiry, units):
    """Inquiry that completed the supplier round-trip and is ready for the customer."""

    def _make(**overrides) -> Inquiry:
        fields = dict(
            to_supplier_date=BASE_TIME,
            supplier_offer_date=BASE_TIME + timedelta(days=1),
            purchase_description="Cast steel gate valve",
            purchase_unit_id=units["nos"].id,
            supplier_price=Decimal("100.00"),
            customer_price=Decimal("120.00"),
            margin=Decimal("20"),
            estimated_delivery_days=14,
        )
        fields.update(overrides)
        return make_inquiry(**fields)

    return _make


@pytest.fixture()
def storage(tmp_path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "blobs", "https://files.mte-trading.com")


# ── Fake senders ─────────────────────────────────────────────────────


class FakeMailSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []
        self.calls = 0

    async def send(self, to, subject, body, *, attachments=None, reply_to=None):
        self.calls += 1
        if self.fail:
            raise ChannelDeliveryError("SMTP down", channel="email", recipient=", ".join(to))
        self.sent.append(
            {
                "to": list(to),
                "subject": subject,
                "body": body,
                "attachments": [a.filename for a in attachments or []],
                "reply_to": list(reply_to or []),
            }
        )


class FakeMessageSender:
    def __init__(self, fail_numbers: set | None = None):
        self.fail_numbers = fail_numbers or set()
        self.templates: list[dict] = []
        self.texts: list[dict] = []
        self.documents: list[dict] = []

    def _check(self, to):
        if to in self.fail_numbers:
            raise ChannelDeliveryError("WhatsApp 400", channel="message", recipient=to)

    async def send_text(self, to, text):
        self._check(to)
        self.texts.append({"to": to, "text": text})

    async def send_template(self, to, template, params):
        self._check(to)
        self.templates.append({"to": to, "template": template, "params": list(params)})

    async def send_document(self, to, filename, content, content_type):
        self._check(to)
        self.documents.append({"to": to, "filename": filename, "content_type": content_type})


@pytest.fixture()
def mail_sender() -> FakeMailSender:
    return FakeMailSender()


@pytest.fixture()
def message_sender() -> FakeMessageSender:
    return FakeMessageSender()


@pytest.fixture()
def live_delivery():
    """Flip both channels to production so external recipients are included."""
    from tradedesk.config import settings

    with patch.object(settings, "email_environment", "production"), patch.object(
        settings, "whatsapp_environment", "production"
    ):
        yield settings


# ── API client ───────────────────────────────────────────────────────


@pytest.fixture()
def client(db_session, test_user, storage, mail_sender, message_sender) -> TestClient:
    """FastAPI TestClient with auth, database, storage and senders overridden."""
    from tradedesk.database import get_db
    from tradedesk.dependencies import (
        mail_sender_dep,
        message_sender_dep,
        require_user,
        storage_dep,
    )
    from tradedesk.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[require_user] = lambda: test_user
    app.dependency_overrides[storage_dep] = lambda: storage
    app.dependency_overrides[mail_sender_dep] = lambda: mail_sender
    app.dependency_overrides[message_sender_dep] = lambda: message_sender

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
