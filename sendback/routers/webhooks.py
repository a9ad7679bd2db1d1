# sendback/routers/webhooks.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlmodel import Session
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse
from twilio.twiml.voice_response import VoiceResponse

from sendback.config import MISSED_CALL_STATUSES, Settings
from sendback.db import get_session
from sendback.deps import get_lead_exporter, get_settings, get_sms_gateway
from sendback.services.conversations import record_inbound
from sendback.services.leads import capture_caller_lead
from sendback.services.missed_calls import process_missed_call
from sendback.services.sheets import LeadSheetExporter, export_lead
from sendback.services.sms import SmsGateway
from sendback.services.tenants import find_tenant_by_number, find_tenant_for_inbound
from sendback.utils.phone import to_e164

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/twilio", tags=["webhooks"])


# ----------------------- helpers -----------------------


def is_missed(call_status: str) -> bool:
    return (call_status or "").strip().lower() in MISSED_CALL_STATUSES


def _external_url_for_signature(request: Request) -> str:
    hdr = request.headers
    proto = (hdr.get("x-forwarded-proto") or request.url.scheme or "https").split(",")[0].strip()
    host = (hdr.get("x-forwarded-host") or hdr.get("host") or request.url.netloc).split(",")[0].strip()
    return f"{proto}://{host}{request.url.path}"


def _signature_ok(request: Request, params: dict, settings: Settings) -> bool:
    if not settings.TWILIO_VALIDATE_SIGNATURES:
        return True
    signature = request.headers.get("X-Twilio-Signature", "")
    if not signature:
        return False
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    return bool(validator.validate(_external_url_for_signature(request), params, signature))


async def _form_params(request: Request) -> dict:
    try:
        form = await request.form()
        return {k: v for k, v in form.items()}
    except Exception as e:
        logger.warning("[webhook] form parse error: %r", e)
        return {}


def _voice_ack() -> PlainTextResponse:
    return PlainTextResponse(str(VoiceResponse()), media_type="application/xml")


def _sms_ack() -> PlainTextResponse:
    return PlainTextResponse(str(MessagingResponse()), media_type="application/xml")


# ------------------------- routes -------------------------


@router.post("/call-status")
async def call_status_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    gateway: SmsGateway = Depends(get_sms_gateway),
    exporter: LeadSheetExporter = Depends(get_lead_exporter),
):
    """
    Twilio call-status callback. Always answers 200 so the provider does
    not retry; everything after classification is best-effort.
    """
    form = await _form_params(request)
    if not _signature_ok(request, form, settings):
        logger.warning("[webhook] invalid Twilio signature on call-status; ignored")
        return _voice_ack()

    call_status = (form.get("CallStatus") or "").strip().lower()
    to_num = to_e164(form.get("To")) or (form.get("To") or "").strip()
    from_num = to_e164(form.get("From")) or (form.get("From") or "").strip()
    caller_name = (form.get("CallerName") or "").strip() or None
    call_sid = (form.get("CallSid") or "").strip() or None

    if not is_missed(call_status):
        logger.info("[webhook] call=%s status=%s not missed; ignored", call_sid or "n/a", call_status or "?")
        return _voice_ack()

    if not from_num:
        logger.warning("[webhook] missed call without caller number call=%s; ignored", call_sid or "n/a")
        return _voice_ack()

    try:
        tenant = find_tenant_by_number(session, to_num)
        if tenant is None:
            logger.info("[webhook] no tenant owns number=%s; ignored", to_num)
            return _voice_ack()

        call = process_missed_call(session, gateway, settings, tenant, from_num, caller_name, call_sid)
        logger.info("[webhook] missed call recorded tenant=%s call=%s responded=%s",
                    tenant.id, call.id, call.responded)

        lead = capture_caller_lead(session, tenant.id, from_num, caller_name)
        if lead is not None:
            background_tasks.add_task(export_lead, exporter, lead)
    except Exception:
        session.rollback()
        logger.exception("[webhook] missed-call processing failed to=%s from=%s", to_num, from_num)

    return _voice_ack()


@router.post("/sms")
async def inbound_sms(
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """Inbound SMS from a caller: appended to their thread with the tenant."""
    form = await _form_params(request)
    if not _signature_ok(request, form, settings):
        logger.warning("[webhook] invalid Twilio signature on sms; ignored")
        return _sms_ack()

    to_num = to_e164(form.get("To")) or (form.get("To") or "").strip()
    from_num = to_e164(form.get("From")) or (form.get("From") or "").strip()
    body = (form.get("Body") or "").strip()
    sid = (form.get("MessageSid") or form.get("SmsSid") or "").strip() or None

    if not (from_num and body):
        return _sms_ack()

    try:
        tenant = find_tenant_for_inbound(session, to_num, from_num, settings.TWILIO_FROM)
        if tenant is None:
            logger.info("[webhook] inbound sms to unknown number=%s; ignored", to_num)
            return _sms_ack()
        msg = record_inbound(session, tenant, from_num, body, sid)
        logger.info("[webhook] inbound sms tenant=%s convo=%s msg=%s", tenant.id, msg.conversation_id, msg.id)
    except Exception:
        session.rollback()
        logger.exception("[webhook] inbound sms processing failed to=%s from=%s", to_num, from_num)

    return _sms_ack()
