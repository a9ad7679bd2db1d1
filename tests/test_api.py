from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from sendback.models import Lead, MissedCall, ScheduledMessage, utcnow
from sendback.services.sheets import ExportError
from sendback.services.tenants import update_settings

from conftest import CALLER, SHARED_NUMBER, TENANT_NUMBER


@pytest.mark.parametrize("method,path", [
    ("get", "/api/missed-calls"),
    ("get", "/api/leads"),
    ("get", "/api/scheduled-messages"),
    ("get", "/api/conversations"),
    ("get", "/api/settings"),
    ("get", "/api/notifications"),
    ("get", "/api/credit-usage"),
])
def test_tenant_routes_require_token(client, method, path):
    r = getattr(client, method)(path)
    assert r.status_code == 401
    assert "detail" in r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "env": "test"}


# ---------- missed calls ----------


def test_missed_calls_are_tenant_scoped(client, session, make_tenant, auth_headers):
    tenant = make_tenant()
    other = make_tenant()
    session.add(MissedCall(tenant_id=tenant.id, caller_number=CALLER, responded=True))
    session.add(MissedCall(tenant_id=other.id, caller_number="+15550001111"))
    session.commit()

    r = client.get("/api/missed-calls", headers=auth_headers(tenant))

    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 1
    assert body["items"][0]["caller_number"] == CALLER
    assert body["items"][0]["responded"] is True


# ---------- leads ----------


def test_create_lead_exports_in_background(client, session, make_tenant, auth_headers, exporter):
    tenant = make_tenant()

    r = client.post("/api/leads", json={"phoneNumber": "555-765-4321", "name": " Jane ", "notes": "AC down"},
                    headers=auth_headers(tenant))

    assert r.status_code == 201
    body = r.json()
    assert body["phone_number"] == CALLER
    assert body["name"] == "Jane"
    assert body["source"] == "manual"
    assert exporter.rows == [body["id"]]

    r = client.get("/api/leads", headers=auth_headers(tenant))
    assert r.json()["count"] == 1


def test_lead_export_failure_does_not_block_creation(client, session, make_tenant, auth_headers, exporter):
    tenant = make_tenant()
    exporter.fail = ExportError("quota exceeded")

    r = client.post("/api/leads", json={"phoneNumber": CALLER}, headers=auth_headers(tenant))

    assert r.status_code == 201
    session.expire_all()
    assert len(session.exec(select(Lead)).all()) == 1


def test_lead_with_invalid_phone_is_rejected(client, make_tenant, auth_headers):
    tenant = make_tenant()

    r = client.post("/api/leads", json={"phoneNumber": "12"}, headers=auth_headers(tenant))

    assert r.status_code == 422


# ---------- scheduled messages ----------


def test_create_and_list_scheduled_messages(client, make_tenant, auth_headers):
    tenant = make_tenant()
    when = (utcnow() + timedelta(hours=2)).isoformat()

    r = client.post("/api/scheduled-messages",
                    json={"recipientNumber": "5557654321", "message": "Reminder: visit tomorrow",
                          "scheduledTime": when},
                    headers=auth_headers(tenant))

    assert r.status_code == 201
    assert r.json()["recipient_number"] == CALLER
    assert r.json()["sent"] is False

    r = client.get("/api/scheduled-messages", headers=auth_headers(tenant))
    assert r.json()["count"] == 1


def test_scheduled_message_validation(client, make_tenant, auth_headers):
    tenant = make_tenant()

    r = client.post("/api/scheduled-messages", json={"recipientNumber": CALLER, "message": "hi"},
                    headers=auth_headers(tenant))

    assert r.status_code == 422
    assert any("scheduledTime" in err["loc"] for err in r.json()["detail"])


def test_cron_dispatches_due_messages(client, session, make_tenant, gateway):
    tenant = make_tenant()
    past = utcnow() - timedelta(minutes=5)
    future = utcnow() + timedelta(hours=5)
    session.add(ScheduledMessage(tenant_id=tenant.id, recipient_number=CALLER, message="due", scheduled_time=past))
    session.add(ScheduledMessage(tenant_id=tenant.id, recipient_number=CALLER, message="later",
                                 scheduled_time=future))
    session.commit()

    assert client.post("/cron/scheduled/run").status_code == 401
    r = client.post("/cron/scheduled/run", headers={"X-Admin-Key": "admin-test"})

    assert r.status_code == 200
    assert r.json() == {"due": 1, "sent": 1, "failed": 0}
    assert [s["body"] for s in gateway.sent] == ["due"]
    assert gateway.sent[0]["from"] == SHARED_NUMBER

    r = client.post("/cron/scheduled/run", headers={"X-Admin-Key": "admin-test"})
    assert r.json() == {"due": 0, "sent": 0, "failed": 0}


def test_cron_counts_failed_sends(client, session, make_tenant, gateway, outage):
    tenant = make_tenant()
    session.add(ScheduledMessage(tenant_id=tenant.id, recipient_number=CALLER, message="due",
                                 scheduled_time=utcnow() - timedelta(minutes=1)))
    session.commit()
    gateway.fail = outage

    r = client.post("/cron/scheduled/run", headers={"X-Admin-Key": "admin-test"})

    assert r.json() == {"due": 1, "sent": 0, "failed": 1}
    session.expire_all()
    assert session.exec(select(ScheduledMessage)).one().sent is False


# ---------- settings ----------


def test_get_settings(client, make_tenant, auth_headers):
    tenant = make_tenant(phone_number=TENANT_NUMBER, auto_response_message="Hi")

    r = client.get("/api/settings", headers=auth_headers(tenant))

    assert r.status_code == 200
    assert r.json()["phone_number"] == TENANT_NUMBER
    assert r.json()["auto_response_message"] == "Hi"


def test_settings_number_conflict(client, make_tenant, auth_headers):
    make_tenant(phone_number=TENANT_NUMBER)
    tenant = make_tenant()

    r = client.patch("/api/settings", json={"phoneNumber": TENANT_NUMBER}, headers=auth_headers(tenant))

    assert r.status_code == 409


def test_settings_empty_template_disables_auto_reply(client, session, make_tenant, auth_headers):
    tenant = make_tenant(auto_response_message="Hi")

    r = client.patch("/api/settings", json={"autoResponseMessage": "  "}, headers=auth_headers(tenant))

    assert r.status_code == 200
    assert r.json()["auto_response_message"] is None


def test_settings_rejects_bad_email(client, make_tenant, auth_headers):
    tenant = make_tenant()

    r = client.patch("/api/settings", json={"email": "not-an-email"}, headers=auth_headers(tenant))

    assert r.status_code == 422


def test_settings_rejects_null_business_name(client, session, make_tenant, auth_headers):
    tenant = make_tenant(business_name="Acme Plumbing")

    r = client.patch("/api/settings", json={"businessName": None}, headers=auth_headers(tenant))

    assert r.status_code == 422
    assert any("businessName" in err["loc"] for err in r.json()["detail"])
    session.refresh(tenant)
    assert tenant.business_name == "Acme Plumbing"


def test_update_settings_only_maps_number_conflicts(session, make_tenant):
    tenant = make_tenant()

    # a NOT NULL failure is not a number conflict
    with pytest.raises(IntegrityError):
        update_settings(session, tenant, {"business_name": None})


# ---------- errors ----------


def test_unhandled_error_returns_500_and_alerts(app, settings, gateway):
    settings.ALERT_SMS_TO = "+15550001234"

    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    r = TestClient(app, raise_server_exceptions=False).get("/boom")

    assert r.status_code == 500
    assert r.json() == {"detail": "Internal Server Error"}
    assert gateway.sent[-1]["to"] == "+15550001234"
    assert "kaboom" in gateway.sent[-1]["body"]
