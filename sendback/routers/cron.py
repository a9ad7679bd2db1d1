# sendback/routers/cron.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from sendback.config import Settings
from sendback.db import get_session
from sendback.deps import get_lead_exporter, get_settings, get_sms_gateway, require_admin_key
from sendback.services.leads import all_leads
from sendback.services.scheduled import dispatch_due
from sendback.services.sheets import ExportError, LeadSheetExporter
from sendback.services.sms import SmsGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_admin_key)])


@router.post("/scheduled/run")
def cron_scheduled_run(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    gateway: SmsGateway = Depends(get_sms_gateway),
):
    return dispatch_due(session, gateway, settings)


def _require_export(exporter: LeadSheetExporter) -> None:
    if not exporter.enabled:
        raise HTTPException(status_code=503, detail="Lead export is not configured")


@router.post("/sheets/init")
def cron_sheets_init(exporter: LeadSheetExporter = Depends(get_lead_exporter)):
    """Write the header row of the Leads sheet."""
    _require_export(exporter)
    try:
        exporter.write_header()
    except ExportError as e:
        logger.error("[sheets] header init failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Spreadsheet error: {e}")
    return {"ok": True}


@router.post("/sheets/sync")
def cron_sheets_sync(
    session: Session = Depends(get_session),
    exporter: LeadSheetExporter = Depends(get_lead_exporter),
):
    """Rebuild the Leads sheet from the database."""
    _require_export(exporter)
    try:
        synced = exporter.sync_leads(all_leads(session))
    except ExportError as e:
        logger.error("[sheets] resync failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Spreadsheet error: {e}")
    return {"ok": True, "synced": synced}
