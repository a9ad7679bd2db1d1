# sendback/services/conversations.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sendback.config import Settings
from sendback.models import (
    INBOUND,
    OUTBOUND,
    Conversation,
    Message,
    MissedCall,
    Tenant,
    as_utc,
    utcnow,
)
from sendback.services.sms import GatewayError, SmsGateway, sender_number
from sendback.services.usage import track_usage

logger = logging.getLogger(__name__)


class ConversationNotFound(Exception):
    """No conversation with that id for this tenant."""


# ---------- lookup ----------


def find_conversation(session: Session, tenant_id: int, phone_number: str) -> Optional[Conversation]:
    return session.exec(
        select(Conversation).where(
            Conversation.tenant_id == tenant_id,
            Conversation.phone_number == phone_number,
        )
    ).first()


def get_owned_conversation(session: Session, tenant_id: int, conversation_id: int) -> Conversation:
    convo = session.get(Conversation, conversation_id)
    if not convo or convo.tenant_id != tenant_id:
        raise ConversationNotFound(conversation_id)
    return convo


def get_or_create_conversation(
    session: Session,
    tenant_id: int,
    phone_number: str,
    missed_call_id: Optional[int] = None,
) -> Conversation:
    """
    One thread per (tenant, phone number). The unique constraint settles
    races between concurrent webhooks: the loser rolls back and re-reads.
    """
    convo = find_conversation(session, tenant_id, phone_number)
    if convo:
        return convo

    convo = Conversation(
        tenant_id=tenant_id,
        phone_number=phone_number,
        missed_call_id=missed_call_id,
        last_message_at=utcnow(),
    )
    session.add(convo)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        existing = find_conversation(session, tenant_id, phone_number)
        if existing is None:
            raise
        logger.info("[conversations] lost create race tenant=%s phone=%s; reusing id=%s",
                    tenant_id, phone_number, existing.id)
        return existing
    session.refresh(convo)
    logger.info("[conversations] opened id=%s tenant=%s phone=%s", convo.id, tenant_id, phone_number)
    return convo


def list_conversations(session: Session, tenant_id: int) -> List[Conversation]:
    return list(session.exec(
        select(Conversation)
        .where(Conversation.tenant_id == tenant_id)
        .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
    ).all())


def list_messages(session: Session, conversation: Conversation) -> List[Message]:
    return list(session.exec(
        select(Message)
        .where(Message.conversation_id == conversation.id)
        .order_by(Message.timestamp, Message.id)
    ).all())


# ---------- writes ----------


def append_message(
    session: Session,
    conversation: Conversation,
    content: str,
    direction: str,
    delivered: bool = False,
    automated: bool = False,
    provider_sid: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> Message:
    ts = as_utc(timestamp) or utcnow()
    msg = Message(
        conversation_id=conversation.id,
        content=content,
        direction=direction,
        automated=automated,
        delivered=delivered,
        provider_sid=provider_sid,
        timestamp=ts,
    )
    session.add(msg)

    # last_message_at only moves forward
    last = as_utc(conversation.last_message_at)
    if last is None or ts > last:
        conversation.last_message_at = ts
        session.add(conversation)

    session.commit()
    session.refresh(msg)
    return msg


def continue_conversation(session: Session, tenant: Tenant, missed_call: MissedCall) -> Conversation:
    """
    After a missed call: open (or reuse) the caller's thread and log the
    auto-reply in it, delivered or not.
    """
    convo = get_or_create_conversation(
        session, tenant.id, missed_call.caller_number, missed_call_id=missed_call.id
    )
    if tenant.auto_response_message:
        append_message(
            session,
            convo,
            content=tenant.auto_response_message,
            direction=OUTBOUND,
            automated=True,
            delivered=bool(missed_call.responded),
        )
    return convo


def send_reply(
    session: Session,
    gateway: SmsGateway,
    settings: Settings,
    tenant: Tenant,
    conversation_id: int,
    body: str,
) -> Message:
    """
    Tenant-typed reply. The draft is stored first; a failed send raises
    GatewayError and leaves it in place with delivered=False.
    """
    convo = get_owned_conversation(session, tenant.id, conversation_id)
    msg = append_message(session, convo, content=body, direction=OUTBOUND, delivered=False)

    try:
        result = gateway.send(body, convo.phone_number, sender_number(tenant, settings))
    except GatewayError:
        logger.exception("[conversations] reply send failed convo=%s msg=%s", convo.id, msg.id)
        raise

    msg.delivered = True
    msg.provider_sid = result.sid
    session.add(msg)
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
    session.refresh(msg)
    return msg


def record_inbound(
    session: Session,
    tenant: Tenant,
    from_number: str,
    body: str,
    message_sid: Optional[str] = None,
) -> Message:
    convo = get_or_create_conversation(session, tenant.id, from_number)
    msg = append_message(
        session,
        convo,
        content=body,
        direction=INBOUND,
        delivered=True,
        provider_sid=message_sid,
    )
    track_usage(session, tenant.id, message_sid, direction=INBOUND, status="received")
    return msg
