from datetime import timedelta
from decimal import Decimal

import pytest
from sqlmodel import select

from sendback.models import CRITICAL_BALANCE, LOW_BALANCE, Notification, utcnow
from sendback.services.balance import check_balance


def _notes(session, tenant):
    session.expire_all()
    return session.exec(select(Notification).where(Notification.tenant_id == tenant.id)).all()


@pytest.mark.parametrize("balance,kind", [
    ("4", CRITICAL_BALANCE),
    ("5", CRITICAL_BALANCE),
    ("5.01", LOW_BALANCE),
    ("10", LOW_BALANCE),
])
def test_threshold_notifications(session, make_tenant, balance, kind):
    tenant = make_tenant(credit_balance=Decimal(balance))

    note = check_balance(session, tenant)

    assert note is not None
    assert note.type == kind
    assert tenant.low_balance_notification_sent is True
    assert tenant.last_balance_notification_at is not None


def test_healthy_balance_is_a_noop(session, make_tenant):
    tenant = make_tenant(credit_balance=Decimal("10.50"))

    assert check_balance(session, tenant) is None
    assert _notes(session, tenant) == []


def test_critical_then_quiet_then_reset(session, make_tenant):
    t0 = utcnow()
    tenant = make_tenant(credit_balance=Decimal("4"))

    note = check_balance(session, tenant, now=t0)
    assert note.type == CRITICAL_BALANCE

    # within the 24h window nothing happens, even at a lower balance
    tenant.credit_balance = Decimal("1")
    assert check_balance(session, tenant, now=t0 + timedelta(hours=23)) is None
    assert len(_notes(session, tenant)) == 1

    # balance recovered; next due check clears the flag without a notification
    session.refresh(tenant)
    tenant.credit_balance = Decimal("50")
    session.add(tenant)
    session.commit()
    assert check_balance(session, tenant, now=t0 + timedelta(hours=25)) is None

    session.refresh(tenant)
    assert tenant.low_balance_notification_sent is False
    assert tenant.last_balance_notification_at is None
    assert len(_notes(session, tenant)) == 1


def test_flag_blocks_repeat_after_window_while_still_low(session, make_tenant):
    t0 = utcnow()
    tenant = make_tenant(credit_balance=Decimal("8"))

    assert check_balance(session, tenant, now=t0).type == LOW_BALANCE
    assert check_balance(session, tenant, now=t0 + timedelta(days=2)) is None
    assert len(_notes(session, tenant)) == 1


# ---------- middleware ----------


def test_middleware_runs_for_authenticated_requests(client, session, make_tenant, auth_headers):
    tenant = make_tenant(credit_balance=Decimal("4"))

    r = client.get("/api/notifications", headers=auth_headers(tenant))
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 1
    assert body["items"][0]["type"] == CRITICAL_BALANCE

    client.get("/api/notifications", headers=auth_headers(tenant))
    assert len(_notes(session, tenant)) == 1

    session.refresh(tenant)
    assert tenant.low_balance_notification_sent is True


def test_middleware_recovery_after_window(client, session, make_tenant, auth_headers):
    tenant = make_tenant(credit_balance=Decimal("4"))
    client.get("/api/settings", headers=auth_headers(tenant))

    session.refresh(tenant)
    tenant.credit_balance = Decimal("15")
    tenant.last_balance_notification_at = utcnow() - timedelta(hours=25)
    session.add(tenant)
    session.commit()

    client.get("/api/settings", headers=auth_headers(tenant))

    session.refresh(tenant)
    assert tenant.low_balance_notification_sent is False
    assert len(_notes(session, tenant)) == 1


def test_middleware_skips_anonymous_requests(client, session, make_tenant):
    tenant = make_tenant(credit_balance=Decimal("1"))

    assert client.get("/health").status_code == 200
    assert _notes(session, tenant) == []


def test_notification_mark_read(client, session, make_tenant, auth_headers):
    tenant = make_tenant()
    other = make_tenant()
    note = Notification(tenant_id=tenant.id, type=LOW_BALANCE, message="low")
    session.add(note)
    session.commit()
    session.refresh(note)

    r = client.post(f"/api/notifications/{note.id}/read", headers=auth_headers(other))
    assert r.status_code == 404

    r = client.post(f"/api/notifications/{note.id}/read", headers=auth_headers(tenant))
    assert r.status_code == 200
    assert r.json()["read"] is True

    r = client.get("/api/notifications", params={"unread_only": True}, headers=auth_headers(tenant))
    assert r.json()["count"] == 0
