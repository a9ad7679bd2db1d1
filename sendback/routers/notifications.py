# sendback/routers/notifications.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from sendback.db import get_session
from sendback.deps import get_current_tenant
from sendback.models import Notification, Tenant
from sendback.routers.serializers import notification_out

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
def get_notifications(
    unread_only: bool = Query(False),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    stmt = select(Notification).where(Notification.tenant_id == tenant.id)
    if unread_only:
        stmt = stmt.where(Notification.read == False)  # noqa: E712
    rows = session.exec(stmt.order_by(Notification.created_at.desc(), Notification.id.desc())).all()
    items = [notification_out(n) for n in rows]
    return {"count": len(items), "items": items}


@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    row = session.get(Notification, notification_id)
    if not row or row.tenant_id != tenant.id:
        raise HTTPException(status_code=404, detail="Not found")

    row.read = True
    session.add(row)
    session.commit()
    session.refresh(row)
    return notification_out(row)
