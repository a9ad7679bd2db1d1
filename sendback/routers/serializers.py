# sendback/routers/serializers.py
from datetime import datetime
from typing import Any, Dict, Optional

from sendback.models import (
    Conversation,
    Lead,
    Message,
    MissedCall,
    Notification,
    ScheduledMessage,
    SubscriptionPlan,
    Tenant,
    as_utc,
)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    dt = as_utc(dt)
    return dt.isoformat() if dt else None


def missed_call_out(c: MissedCall) -> Dict[str, Any]:
    return {
        "id": c.id,
        "caller_number": c.caller_number,
        "caller_name": c.caller_name,
        "timestamp": _iso(c.timestamp),
        "responded": c.responded,
    }


def conversation_out(c: Conversation) -> Dict[str, Any]:
    return {
        "id": c.id,
        "phone_number": c.phone_number,
        "missed_call_id": c.missed_call_id,
        "last_message_at": _iso(c.last_message_at),
        "created_at": _iso(c.created_at),
    }


def message_out(m: Message) -> Dict[str, Any]:
    return {
        "id": m.id,
        "conversation_id": m.conversation_id,
        "content": m.content,
        "direction": m.direction,
        "automated": m.automated,
        "timestamp": _iso(m.timestamp),
        "delivered": m.delivered,
    }


def lead_out(lead: Lead) -> Dict[str, Any]:
    return {
        "id": lead.id,
        "phone_number": lead.phone_number,
        "name": lead.name,
        "notes": lead.notes or "",
        "source": lead.source,
        "created_at": _iso(lead.created_at),
    }


def scheduled_out(s: ScheduledMessage) -> Dict[str, Any]:
    return {
        "id": s.id,
        "recipient_number": s.recipient_number,
        "message": s.message,
        "scheduled_time": _iso(s.scheduled_time),
        "sent": s.sent,
    }


def notification_out(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "message": n.message,
        "read": n.read,
        "created_at": _iso(n.created_at),
    }


def plan_out(p: SubscriptionPlan) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "monthly_price": float(p.monthly_price or 0),
        "message_credits": p.message_credits,
    }


def tenant_settings_out(t: Tenant) -> Dict[str, Any]:
    return {
        "id": t.id,
        "username": t.username,
        "business_name": t.business_name,
        "email": t.email,
        "phone_number": t.phone_number,
        "auto_response_message": t.auto_response_message,
        "subscription_plan": t.subscription_plan,
        "subscription_status": t.subscription_status,
        "credit_balance": float(t.credit_balance or 0),
    }
