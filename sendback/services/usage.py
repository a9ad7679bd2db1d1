# sendback/services/usage.py
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlmodel import Session, select

from sendback.models import OUTBOUND, MessageUsage, Tenant, as_utc, utcnow

logger = logging.getLogger(__name__)

USAGE_WINDOW_DAYS = 30


def track_usage(
    session: Session,
    tenant_id: int,
    message_sid: Optional[str],
    direction: str = OUTBOUND,
    status: str = "sent",
    credit_cost: Decimal = Decimal("0"),
    commit: bool = True,
) -> MessageUsage:
    """
    Append one ledger row. Outbound rows also debit credit_cost from the
    tenant's balance (plain read-modify-write, no lock).
    """
    row = MessageUsage(
        tenant_id=tenant_id,
        message_sid=message_sid,
        direction=direction,
        status=status,
    )
    session.add(row)

    if direction == OUTBOUND and credit_cost:
        tenant = session.get(Tenant, tenant_id)
        if tenant is not None:
            tenant.credit_balance = Decimal(tenant.credit_balance or 0) - credit_cost
            session.add(tenant)

    if commit:
        session.commit()
        session.refresh(row)
    logger.debug("[usage] tenant=%s sid=%s direction=%s status=%s", tenant_id, message_sid, direction, status)
    return row


def credit_usage_report(session: Session, tenant: Tenant, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Outbound messages per UTC calendar day over the trailing 30 days.
    Only days with traffic are listed, oldest first.
    """
    now = as_utc(now) or utcnow()
    since = now - timedelta(days=USAGE_WINDOW_DAYS)

    rows = session.exec(
        select(MessageUsage)
        .where(
            MessageUsage.tenant_id == tenant.id,
            MessageUsage.direction == OUTBOUND,
            MessageUsage.created_at >= since,
        )
        .order_by(MessageUsage.created_at)
    ).all()

    per_day: "OrderedDict[str, int]" = OrderedDict()
    for row in rows:
        ts = as_utc(row.created_at)
        if ts < since or ts > now:
            continue
        day = ts.date().isoformat()
        per_day[day] = per_day.get(day, 0) + 1

    usage = [{"date": day, "count": count} for day, count in per_day.items()]
    return {
        "usage": usage,
        "totalMessagesLast30Days": sum(per_day.values()),
        "currentBalance": float(tenant.credit_balance or 0),
    }
