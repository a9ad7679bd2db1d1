# sendback/routers/missed_calls.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from sendback.db import get_session
from sendback.deps import get_current_tenant
from sendback.models import Tenant
from sendback.routers.serializers import missed_call_out
from sendback.services.missed_calls import list_missed_calls

router = APIRouter(prefix="/api", tags=["missed-calls"])


@router.get("/missed-calls")
def get_missed_calls(
    limit: int = Query(200, ge=1, le=500),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    items = [missed_call_out(c) for c in list_missed_calls(session, tenant.id, limit=limit)]
    return {"count": len(items), "items": items}
