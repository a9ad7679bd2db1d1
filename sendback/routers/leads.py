# sendback/routers/leads.py
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlmodel import Session

from sendback.db import get_session
from sendback.deps import get_current_tenant, get_lead_exporter
from sendback.models import Tenant
from sendback.routers.serializers import lead_out
from sendback.schemas import LeadIn
from sendback.services.leads import create_lead, list_leads
from sendback.services.sheets import LeadSheetExporter, export_lead
from sendback.utils.phone import normalize_us_phone

router = APIRouter(prefix="/api", tags=["leads"])


@router.get("/leads")
def get_leads(
    limit: int = Query(200, ge=1, le=500),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    items = [lead_out(lead) for lead in list_leads(session, tenant.id, limit=limit)]
    return {"count": len(items), "items": items}


@router.post("/leads", status_code=status.HTTP_201_CREATED)
def post_lead(
    payload: LeadIn,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
    exporter: LeadSheetExporter = Depends(get_lead_exporter),
):
    e164 = normalize_us_phone(payload.phone_number)
    lead = create_lead(
        session,
        tenant.id,
        e164,
        name=payload.name,
        notes=payload.notes,
        source=(payload.source or "manual").strip() or "manual",
    )
    # spreadsheet sync never blocks lead creation
    background_tasks.add_task(export_lead, exporter, lead)
    return lead_out(lead)
