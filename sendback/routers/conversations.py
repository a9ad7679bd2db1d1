# sendback/routers/conversations.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from sendback.config import Settings
from sendback.db import get_session
from sendback.deps import get_current_tenant, get_settings, get_sms_gateway
from sendback.models import Tenant
from sendback.routers.serializers import conversation_out, message_out
from sendback.schemas import MessageIn
from sendback.services.conversations import (
    ConversationNotFound,
    get_owned_conversation,
    list_conversations,
    list_messages,
    send_reply,
)
from sendback.services.sms import GatewayError, SmsGateway

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.get("")
def get_conversations(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    items = [conversation_out(c) for c in list_conversations(session, tenant.id)]
    return {"count": len(items), "items": items}


@router.get("/{conversation_id}/messages")
def get_messages(
    conversation_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    try:
        convo = get_owned_conversation(session, tenant.id, conversation_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    items = [message_out(m) for m in list_messages(session, convo)]
    return {"count": len(items), "items": items}


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
def post_message(
    conversation_id: int,
    payload: MessageIn,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
    settings: Settings = Depends(get_settings),
    gateway: SmsGateway = Depends(get_sms_gateway),
):
    try:
        msg = send_reply(session, gateway, settings, tenant, conversation_id, payload.content.strip())
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except GatewayError as e:
        # the undelivered message stays in the thread
        raise HTTPException(status_code=502, detail=f"Failed to send message: {e}")
    return message_out(msg)
