# sendback/routers/scheduled.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from sendback.db import get_session
from sendback.deps import get_current_tenant
from sendback.models import Tenant
from sendback.routers.serializers import scheduled_out
from sendback.schemas import ScheduledMessageIn
from sendback.services.scheduled import create_scheduled_message, list_scheduled_messages
from sendback.utils.phone import normalize_us_phone

router = APIRouter(prefix="/api", tags=["scheduled"])


@router.get("/scheduled-messages")
def get_scheduled_messages(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    items = [scheduled_out(s) for s in list_scheduled_messages(session, tenant.id)]
    return {"count": len(items), "items": items}


@router.post("/scheduled-messages", status_code=status.HTTP_201_CREATED)
def post_scheduled_message(
    payload: ScheduledMessageIn,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    row = create_scheduled_message(
        session,
        tenant.id,
        normalize_us_phone(payload.recipient_number),
        payload.message.strip(),
        payload.scheduled_time,
    )
    return scheduled_out(row)
