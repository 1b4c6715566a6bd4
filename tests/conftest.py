import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import main
from cashledger.core.events import EventBus
from cashledger.core.exceptions import DependencyError
from cashledger.db.get_db import build_engine, get_db, init_db
from cashledger.models.directory import Admin, Staff
from cashledger.services import opening_balances
from cashledger.services.ledger import CashLedger
from cashledger.services.notifications import NotificationFanout


class FakeMailer:
    """Collects outgoing e-mails instead of calling the mail API."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def __call__(self, to, subject, html):
        if self.fail:
            raise DependencyError("Mail API unavailable")
        recipients = [to] if isinstance(to, str) else list(to)
        self.sent.append({"to": recipients, "subject": subject, "html": html})
        return {"success": True}

    def subjects(self):
        return [message["subject"] for message in self.sent]


@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite database file per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'cashledger.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def event_bus():
    bus = EventBus()
    yield bus
    bus.close()


@pytest.fixture
def fanout(session_factory, mailer, event_bus):
    fanout = NotificationFanout(session_factory, mailer=mailer)
    fanout.subscribe(event_bus)
    return fanout


@pytest.fixture
def ledger(event_bus, fanout):
    return CashLedger(event_bus)


@pytest.fixture
def admin(db):
    """Create and return an admin account."""
    admin = Admin(name="Head Office", email="admin@example.com")
    db.add(admin)
    db.commit()
    return admin


@pytest.fixture
def second_admin(db):
    admin = Admin(name="Finance Lead", email="finance@example.com")
    db.add(admin)
    db.commit()
    return admin


@pytest.fixture
def accountant(db):
    """Create and return an active accountant (role spelled in mixed case)."""
    staff = Staff(name="Anu Accountant", employee_id="EMP-002", email="accounts@example.com",
                  role="Accountant", branch="Kochi", is_active=True)
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def staff_member(db):
    """Create and return a regular branch staff member who submits entries."""
    staff = Staff(name="Ravi Kumar", employee_id="EMP-001", email="ravi@example.com",
                  role="Staff", branch="Kochi", is_active=True)
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def kochi(db):
    """Branch Kochi with an opening balance of 1000."""
    return opening_balances.reconcile(db, "Kochi", Decimal("1000"), entry_date=date.today(), note="Initial float")


@pytest.fixture
def make_payload(staff_member):
    def _make(**overrides):
        payload = {
            "branch": "Kochi",
            "staff_id": str(staff_member.id),
            "transaction_date": date.today().isoformat(),
            "bill_status": "Paid",
            "primary_list": "Office supplies",
            "nature_of_expense": "Stationery",
            "cash_out": 200,
        }
        payload.update(overrides)
        return {key: value for key, value in payload.items() if value is not None}
    return _make


@pytest.fixture
def client(session_factory, event_bus, fanout):
    """API client bound to the test database, bus and fan-out."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db] = override_get_db
    main.app.state.event_bus = event_bus
    main.app.state.fanout = fanout
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
