# sendback/services/scheduled.py
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from sendback.config import Settings
from sendback.models import OUTBOUND, ScheduledMessage, Tenant, as_utc, utcnow
from sendback.services.sms import SmsGateway, can_send, sender_number
from sendback.services.usage import track_usage

logger = logging.getLogger(__name__)


def create_scheduled_message(
    session: Session,
    tenant_id: int,
    recipient_number: str,
    message: str,
    scheduled_time: datetime,
) -> ScheduledMessage:
    row = ScheduledMessage(
        tenant_id=tenant_id,
        recipient_number=recipient_number,
        message=message,
        scheduled_time=as_utc(scheduled_time),
        sent=False,
    )
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def list_scheduled_messages(session: Session, tenant_id: int) -> List[ScheduledMessage]:
    return list(session.exec(
        select(ScheduledMessage)
        .where(ScheduledMessage.tenant_id == tenant_id)
        .order_by(ScheduledMessage.scheduled_time, ScheduledMessage.id)
    ).all())


def send_scheduled_message(
    session: Session,
    gateway: SmsGateway,
    settings: Settings,
    tenant_id: int,
    message_id: int,
) -> bool:
    """
    Send one scheduled message. False when it is unknown, belongs to
    another tenant, was already sent, has no sender, or the send fails.
    """
    row = session.get(ScheduledMessage, message_id)
    if not row or row.tenant_id != tenant_id or row.sent:
        return False

    tenant = session.get(Tenant, tenant_id)
    if tenant is None or not can_send(tenant, settings):
        return False

    try:
        result = gateway.send(row.message, row.recipient_number, sender_number(tenant, settings))
    except Exception:
        logger.exception("[scheduled] send failed id=%s tenant=%s", row.id, tenant_id)
        return False

    row.sent = True
    session.add(row)
    track_usage(
        session,
        tenant_id,
        result.sid,
        direction=OUTBOUND,
        status=result.status,
        credit_cost=settings.MESSAGE_CREDIT_COST,
        commit=False,
    )
    session.commit()
    return True


def dispatch_due(
    session: Session,
    gateway: SmsGateway,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    now = as_utc(now) or utcnow()
    due = session.exec(
        select(ScheduledMessage)
        .where(ScheduledMessage.sent == False, ScheduledMessage.scheduled_time <= now)  # noqa: E712
        .order_by(ScheduledMessage.scheduled_time)
    ).all()

    sent = failed = 0
    for row in due:
        if send_scheduled_message(session, gateway, settings, row.tenant_id, row.id):
            sent += 1
        else:
            failed += 1

    logger.info("[scheduled] dispatch due=%s sent=%s failed=%s", len(due), sent, failed)
    return {"due": len(due), "sent": sent, "failed": failed}
