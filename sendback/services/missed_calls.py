# sendback/services/missed_calls.py
import logging
from typing import List, Optional

from sqlmodel import Session, select

from sendback.config import Settings
from sendback.models import OUTBOUND, MissedCall, Tenant
from sendback.services.conversations import continue_conversation
from sendback.services.sms import SmsGateway, can_send, sender_number
from sendback.services.usage import track_usage

logger = logging.getLogger(__name__)


def record_missed_call(
    session: Session,
    tenant_id: int,
    caller_number: str,
    caller_name: Optional[str] = None,
    call_sid: Optional[str] = None,
) -> MissedCall:
    call = MissedCall(
        tenant_id=tenant_id,
        caller_number=caller_number,
        caller_name=(caller_name or "").strip() or None,
        call_sid=call_sid or None,
        responded=False,
    )
    session.add(call)
    session.commit()
    session.refresh(call)
    return call


def handle_missed_call(
    session: Session,
    gateway: SmsGateway,
    settings: Settings,
    tenant: Tenant,
    caller_number: str,
    caller_name: Optional[str] = None,
    call_sid: Optional[str] = None,
) -> MissedCall:
    """
    Record the call, then try the auto-reply once.

    Never raises on a send failure: the returned record's `responded`
    flag says whether the text went out.
    """
    call = record_missed_call(session, tenant.id, caller_number, caller_name, call_sid)

    template = tenant.auto_response_message
    if not template:
        logger.info("[missed_call] tenant=%s has no auto-response message; call=%s recorded only",
                    tenant.id, call.id)
        return call

    if not can_send(tenant, settings):
        logger.warning("[missed_call] tenant=%s has no sender number configured; skipping auto-reply", tenant.id)
        return call

    try:
        result = gateway.send(template, caller_number, sender_number(tenant, settings))
    except Exception:
        logger.exception("[missed_call] auto-reply failed tenant=%s call=%s to=%s",
                         tenant.id, call.id, caller_number)
        return call

    call.responded = True
    session.add(call)
    track_usage(
        session,
        tenant.id,
        result.sid,
        direction=OUTBOUND,
        status=result.status,
        credit_cost=settings.MESSAGE_CREDIT_COST,
        commit=False,
    )
    session.commit()
    session.refresh(call)
    logger.info("[missed_call] auto-reply sent tenant=%s call=%s sid=%s", tenant.id, call.id, result.sid)
    return call


def process_missed_call(
    session: Session,
    gateway: SmsGateway,
    settings: Settings,
    tenant: Tenant,
    caller_number: str,
    caller_name: Optional[str] = None,
    call_sid: Optional[str] = None,
) -> MissedCall:
    """Missed-call handler followed by conversation continuation."""
    call = handle_missed_call(session, gateway, settings, tenant, caller_number, caller_name, call_sid)
    if tenant.auto_response_message:
        continue_conversation(session, tenant, call)
    return call


def list_missed_calls(session: Session, tenant_id: int, limit: int = 200) -> List[MissedCall]:
    return list(session.exec(
        select(MissedCall)
        .where(MissedCall.tenant_id == tenant_id)
        .order_by(MissedCall.timestamp.desc(), MissedCall.id.desc())
        .limit(limit)
    ).all())
