# sendback/services/leads.py
import logging
from typing import List, Optional

from sqlmodel import Session, select

from sendback.models import Lead

logger = logging.getLogger(__name__)


def create_lead(
    session: Session,
    tenant_id: int,
    phone_number: str,
    name: Optional[str] = None,
    notes: Optional[str] = None,
    source: str = "manual",
) -> Lead:
    lead = Lead(
        tenant_id=tenant_id,
        phone_number=phone_number,
        name=(name or "").strip() or None,
        notes=(notes or "").strip() or None,
        source=source,
    )
    session.add(lead)
    session.commit()
    session.refresh(lead)
    return lead


def capture_caller_lead(
    session: Session,
    tenant_id: int,
    phone_number: str,
    name: Optional[str] = None,
) -> Optional[Lead]:
    """
    Auto-capture a lead the first time a number calls a tenant.
    Returns the new lead, or None when the number is already known.
    """
    existing = session.exec(
        select(Lead).where(Lead.tenant_id == tenant_id, Lead.phone_number == phone_number).limit(1)
    ).first()
    if existing:
        return None
    lead = create_lead(session, tenant_id, phone_number, name=name, notes="Missed call", source="missed_call")
    logger.info("[leads] captured lead=%s tenant=%s from missed call", lead.id, tenant_id)
    return lead


def list_leads(session: Session, tenant_id: int, limit: int = 200) -> List[Lead]:
    return list(session.exec(
        select(Lead)
        .where(Lead.tenant_id == tenant_id)
        .order_by(Lead.id.desc())
        .limit(limit)
    ).all())


def all_leads(session: Session) -> List[Lead]:
    """Every tenant's leads, oldest first (the shared export sheet's order)."""
    return list(session.exec(select(Lead).order_by(Lead.id)).all())
