# sendback/services/tenants.py
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sendback.models import Conversation, Tenant
from sendback.utils.phone import to_e164

logger = logging.getLogger(__name__)


class PhoneNumberTaken(Exception):
    """Another tenant already owns this gateway number."""


def find_tenant_by_number(session: Session, number: Optional[str]) -> Optional[Tenant]:
    """
    Tenant directory: dialed number -> owning tenant.
    Exact match on the normalized E.164 number (unique index).
    """
    e164 = to_e164(number)
    if not e164:
        return None
    return session.exec(
        select(Tenant).where(Tenant.phone_number == e164, Tenant.is_active == True)  # noqa: E712
    ).first()


# Fields a tenant may change on itself
SETTINGS_FIELDS = ("phone_number", "auto_response_message", "business_name", "email")


def update_settings(session: Session, tenant: Tenant, changes: Dict[str, Any]) -> Tenant:
    data = {k: v for k, v in changes.items() if k in SETTINGS_FIELDS}

    for key, value in list(data.items()):
        if isinstance(value, str):
            data[key] = value.strip()

    if "phone_number" in data:
        number = data["phone_number"] or None
        if number:
            owner = session.exec(select(Tenant).where(Tenant.phone_number == number)).first()
            if owner and owner.id != tenant.id:
                raise PhoneNumberTaken(number)
        data["phone_number"] = number

    if "auto_response_message" in data and not data["auto_response_message"]:
        # empty template disables the auto-responder
        data["auto_response_message"] = None

    for key, value in data.items():
        setattr(tenant, key, value)

    session.add(tenant)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        # only the unique gateway number maps to a conflict
        if data.get("phone_number") and "phone_number" in str(e.orig):
            raise PhoneNumberTaken(data["phone_number"]) from e
        raise
    session.refresh(tenant)

    logger.info("[tenants] tenant=%s updated fields=%s", tenant.id, sorted(data))
    return tenant


def find_tenant_for_inbound(session: Session, to_number: Optional[str], from_number: str,
                            shared_number: Optional[str] = None) -> Optional[Tenant]:
    """
    Inbound SMS routing. A text to a tenant's own number goes to that
    tenant; a text to the shared platform number goes to whichever tenant
    last messaged the sender.
    """
    tenant = find_tenant_by_number(session, to_number)
    if tenant is not None:
        return tenant
    if not shared_number or to_e164(to_number) != to_e164(shared_number):
        return None
    convo = session.exec(
        select(Conversation)
        .where(Conversation.phone_number == from_number)
        .order_by(Conversation.last_message_at.desc())
        .limit(1)
    ).first()
    return session.get(Tenant, convo.tenant_id) if convo else None
