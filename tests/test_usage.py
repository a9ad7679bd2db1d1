from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sendback.models import INBOUND, OUTBOUND, MessageUsage, utcnow
from sendback.services.usage import credit_usage_report, track_usage


def _usage(session, tenant, when, direction=OUTBOUND, count=1):
    for i in range(count):
        session.add(MessageUsage(tenant_id=tenant.id, message_sid=f"SM{when:%d%H}{i}",
                                 direction=direction, created_at=when))
    session.commit()


def test_report_groups_by_day(session, make_tenant):
    now = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
    tenant = make_tenant(credit_balance=Decimal("42.50"))
    d1 = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
    d3 = datetime(2026, 3, 12, 16, 0, tzinfo=timezone.utc)

    _usage(session, tenant, d1, count=3)
    _usage(session, tenant, d3, count=2)
    _usage(session, tenant, d3, direction=INBOUND, count=4)
    _usage(session, tenant, now - timedelta(days=31))

    report = credit_usage_report(session, tenant, now=now)

    assert report["usage"] == [
        {"date": "2026-03-10", "count": 3},
        {"date": "2026-03-12", "count": 2},
    ]
    assert report["totalMessagesLast30Days"] == 5
    assert report["currentBalance"] == 42.5


def test_report_is_tenant_scoped(session, make_tenant):
    now = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
    tenant = make_tenant()
    other = make_tenant()
    _usage(session, other, now - timedelta(days=1), count=7)

    report = credit_usage_report(session, tenant, now=now)

    assert report["usage"] == []
    assert report["totalMessagesLast30Days"] == 0


def test_track_usage_debits_outbound_only(session, make_tenant):
    tenant = make_tenant(credit_balance=Decimal("10"))

    track_usage(session, tenant.id, "SM1", direction=OUTBOUND, credit_cost=Decimal("1"))
    track_usage(session, tenant.id, "SM2", direction=INBOUND, credit_cost=Decimal("1"))

    session.refresh(tenant)
    assert tenant.credit_balance == Decimal("9")


def test_credit_usage_endpoint(client, session, make_tenant, auth_headers):
    tenant = make_tenant(credit_balance=Decimal("25"))
    d1 = utcnow() - timedelta(days=5)
    d3 = utcnow() - timedelta(days=3)
    _usage(session, tenant, d1, count=3)
    _usage(session, tenant, d3, count=2)

    r = client.get("/api/credit-usage", headers=auth_headers(tenant))

    assert r.status_code == 200
    body = r.json()
    assert [u["count"] for u in body["usage"]] == [3, 2]
    assert [u["date"] for u in body["usage"]] == [d1.date().isoformat(), d3.date().isoformat()]
    assert body["totalMessagesLast30Days"] == 5
    assert body["currentBalance"] == 25.0
