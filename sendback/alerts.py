# sendback/alerts.py
import logging

from sendback.config import Settings
from sendback.services.sms import SmsGateway

logger = logging.getLogger(__name__)


def send_error_alert(gateway: SmsGateway, settings: Settings, message: str) -> bool:
    """
    Send a crash/500 alert SMS to ALERT_SMS_TO.
    Uses the same gateway as the rest of the app. Never raises.
    """
    dest = settings.ALERT_SMS_TO
    if not dest:
        logger.debug("[alerts] no ALERT_SMS_TO set; skipping")
        return False

    msg = (message or "").strip() or "Server error (empty detail)"
    # keep it short-ish for SMS
    if len(msg) > 900:
        msg = msg[:900] + "..."

    try:
        gateway.send(msg, dest, settings.TWILIO_FROM or None)
        logger.info("[alerts] sent error SMS to %s", dest)
        return True
    except Exception as e:
        logger.error("[alerts] failed to send SMS alert: %r", e)
        return False
