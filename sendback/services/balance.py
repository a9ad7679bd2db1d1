# sendback/services/balance.py
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlmodel import Session

from sendback.config import CRITICAL_BALANCE_THRESHOLD, LOW_BALANCE_THRESHOLD
from sendback.models import CRITICAL_BALANCE, LOW_BALANCE, Notification, Tenant, as_utc, utcnow

logger = logging.getLogger(__name__)

CHECK_INTERVAL = timedelta(hours=24)


def _is_due(tenant: Tenant, now: datetime) -> bool:
    last = as_utc(tenant.last_balance_notification_at)
    return last is None or (now - last) > CHECK_INTERVAL


def check_balance(session: Session, tenant: Tenant, now: Optional[datetime] = None) -> Optional[Notification]:
    """
    Low-balance policy, evaluated at most once per rolling 24h window
    (keyed off the last notification time, not the calendar day).

      balance <= 5  and not yet notified -> critical_balance notification
      balance <= 10 and not yet notified -> low_balance notification
      balance > 10  and previously notified -> reset bookkeeping

    Returns the notification it created, if any.
    """
    now = as_utc(now) or utcnow()
    if not _is_due(tenant, now):
        return None

    balance = Decimal(tenant.credit_balance or 0)
    already_sent = bool(tenant.low_balance_notification_sent)

    if balance <= CRITICAL_BALANCE_THRESHOLD and not already_sent:
        note = Notification(
            tenant_id=tenant.id,
            type=CRITICAL_BALANCE,
            message=f"Your credit balance is critically low ({balance}). Add credits to keep auto-replies running.",
        )
    elif balance <= LOW_BALANCE_THRESHOLD and not already_sent:
        note = Notification(
            tenant_id=tenant.id,
            type=LOW_BALANCE,
            message=f"Your credit balance is running low ({balance}).",
        )
    else:
        if balance > LOW_BALANCE_THRESHOLD and already_sent:
            tenant.low_balance_notification_sent = False
            tenant.last_balance_notification_at = None
            session.add(tenant)
            session.commit()
            logger.info("[balance] tenant=%s recovered (balance=%s); notification flag cleared", tenant.id, balance)
        return None

    tenant.low_balance_notification_sent = True
    tenant.last_balance_notification_at = now
    session.add(note)
    session.add(tenant)
    session.commit()
    session.refresh(note)
    logger.info("[balance] tenant=%s %s notification id=%s balance=%s", tenant.id, note.type, note.id, balance)
    return note
