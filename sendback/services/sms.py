# sendback/services/sms.py
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from sendback.config import Settings
from sendback.models import Tenant
from sendback.utils.phone import to_e164

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The messaging gateway refused or failed to send."""


@dataclass
class SendResult:
    sid: str
    status: str


class SmsGateway:
    """
    Thin wrapper over the Twilio REST client.

    send() raises GatewayError on any failure; callers decide whether that
    is fatal (user replies) or swallowed (auto-responses).
    """

    def __init__(self, settings: Settings, client: Optional[Client] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> Client:
        if self._client is not None:
            return self._client
        s = self.settings
        if s.TWILIO_API_KEY:
            # API Key auth: Client(api_key_sid, api_key_secret, account_sid)
            if not (s.TWILIO_AUTH_TOKEN and s.TWILIO_ACCOUNT_SID):
                raise GatewayError("Missing TWILIO_AUTH_TOKEN / TWILIO_ACCOUNT_SID")
            self._client = Client(s.TWILIO_API_KEY, s.TWILIO_AUTH_TOKEN, s.TWILIO_ACCOUNT_SID)
        else:
            if not (s.TWILIO_ACCOUNT_SID and s.TWILIO_AUTH_TOKEN):
                raise GatewayError("Missing TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN")
            self._client = Client(s.TWILIO_ACCOUNT_SID, s.TWILIO_AUTH_TOKEN)
        return self._client

    def send(self, body: str, to: str, from_: Optional[str] = None) -> SendResult:
        phone = to_e164(to)
        if not phone:
            raise GatewayError(f"invalid destination phone={to!r}")

        if self.settings.SMS_DRY_RUN:
            sid = f"SMdryrun{uuid.uuid4().hex[:24]}"
            logger.info("[sms] DRY-RUN to=%s from=%s body=%r", phone, from_, body)
            return SendResult(sid=sid, status="dry-run")

        kwargs = {"to": phone, "body": body}
        if from_:
            kwargs["from_"] = from_
        elif self.settings.TWILIO_MESSAGING_SERVICE_SID:
            kwargs["messaging_service_sid"] = self.settings.TWILIO_MESSAGING_SERVICE_SID
        else:
            raise GatewayError("No sender: set TWILIO_FROM, TWILIO_MESSAGING_SERVICE_SID or a tenant number")

        try:
            msg = self._get_client().messages.create(**kwargs)
        except TwilioException as e:
            raise GatewayError(str(e)) from e

        logger.info("[sms] sent sid=%s to=%s status=%s", msg.sid, phone, msg.status)
        return SendResult(sid=msg.sid, status=str(msg.status or "queued"))


def sender_number(tenant: Tenant, settings: Settings) -> Optional[str]:
    """
    Origin number for a tenant's outbound texts.

    shared mode: the platform number (TWILIO_FROM), or None to let the
    messaging service pick; tenant mode: the tenant's own gateway number.
    """
    if settings.SMS_SENDER_MODE == "tenant":
        return tenant.phone_number or None
    return settings.TWILIO_FROM or None


def can_send(tenant: Tenant, settings: Settings) -> bool:
    if settings.SMS_SENDER_MODE == "tenant":
        return bool(tenant.phone_number)
    return bool(settings.TWILIO_FROM or settings.TWILIO_MESSAGING_SERVICE_SID or settings.SMS_DRY_RUN)
