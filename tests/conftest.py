import os
import sys

# Ensure project root is in sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# in-memory DB for the module-level app built on import
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from sendback.config import Settings
from sendback.deps import create_access_token
from sendback.main import create_app
from sendback.models import Tenant
from sendback.services.payments import FakePaymentGateway
from sendback.services.sheets import LeadSheetExporter
from sendback.services.sms import GatewayError, SendResult, SmsGateway

SHARED_NUMBER = "+18005550100"
TENANT_NUMBER = "+15551234567"
CALLER = "+15557654321"


class FakeSmsGateway(SmsGateway):
    """Records sends; set .fail to an exception to simulate an outage."""

    def __init__(self, settings):
        super().__init__(settings)
        self.sent = []
        self.fail = None

    def send(self, body, to, from_=None):
        if self.fail is not None:
            raise self.fail
        sid = f"SMfake{len(self.sent) + 1:04d}"
        self.sent.append({"body": body, "to": to, "from": from_, "sid": sid})
        return SendResult(sid=sid, status="queued")


class FakeExporter(LeadSheetExporter):
    def __init__(self):
        super().__init__()
        self.rows = []
        self.fail = None

    @property
    def enabled(self):
        return True

    def add_lead(self, lead):
        if self.fail is not None:
            raise self.fail
        self.rows.append(lead.id)


@pytest.fixture
def settings(monkeypatch, tmp_path):
    for key in ["TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_API_KEY", "TWILIO_MESSAGING_SERVICE_SID",
                "STRIPE_SECRET_KEY", "ALERT_SMS_TO", "GOOGLE_SHEETS_CREDENTIALS_FILE"]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("ADMIN_KEY", "admin-test")
    monkeypatch.setenv("TWILIO_FROM", SHARED_NUMBER)
    monkeypatch.setenv("SMS_SENDER_MODE", "shared")
    monkeypatch.setenv("SMS_DRY_RUN", "0")
    monkeypatch.setenv("TWILIO_VALIDATE_SIGNATURES", "0")
    monkeypatch.setenv("PAYMENTS_MODE", "fake")
    monkeypatch.setenv("MESSAGE_CREDIT_COST", "1")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    return Settings()


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def gateway(settings):
    return FakeSmsGateway(settings)


@pytest.fixture
def exporter():
    return FakeExporter()


@pytest.fixture
def payments():
    return FakePaymentGateway()


@pytest.fixture
def app(settings, engine, gateway, payments, exporter):
    return create_app(
        settings=settings,
        engine=engine,
        sms=gateway,
        payments=payments,
        lead_exporter=exporter,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_tenant(session):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        data = {
            "username": f"tenant{counter['n']}",
            "business_name": f"Business {counter['n']}",
            "credit_balance": Decimal("100"),
        }
        data.update(fields)
        tenant = Tenant(**data)
        session.add(tenant)
        session.commit()
        session.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(tenant):
        return {"Authorization": f"Bearer {create_access_token(settings, tenant.id)}"}

    return _headers


@pytest.fixture
def outage():
    return GatewayError("simulated outage")
