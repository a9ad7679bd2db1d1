# sendback/deps.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from jose import JWTError, jwt
from sqlmodel import Session

from sendback.config import Settings
from sendback.db import get_session
from sendback.models import Tenant
from sendback.services.payments import PaymentGateway
from sendback.services.sheets import LeadSheetExporter
from sendback.services.sms import SmsGateway

ALGORITHM = "HS256"


# ---------- app-scoped collaborators ----------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_sms_gateway(request: Request) -> SmsGateway:
    return request.app.state.sms


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payments


def get_lead_exporter(request: Request) -> LeadSheetExporter:
    return request.app.state.lead_exporter


# ---------- tokens ----------


def create_access_token(settings: Settings, tenant_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": str(tenant_id), "exp": expire}, settings.JWT_SECRET, algorithm=ALGORITHM)


def parse_token(settings: Settings, token: str) -> Dict[str, Any]:
    """Decode a JWT or raise HTTPException(401)."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    if not isinstance(payload, dict):
        raise credentials_exception
    return payload


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    auth = (authorization or "").strip()
    if not auth.lower().startswith("bearer "):
        return None
    return auth[7:].strip() or None


def tenant_id_from_token(settings: Settings, token: Optional[str]) -> Optional[int]:
    """Non-raising variant used by middleware."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
        return int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None


# ---------- auth dependencies ----------


def get_current_tenant(
    authorization: Optional[str] = Header(None),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Tenant:
    """
    Reads Authorization: Bearer <token>, decodes the JWT and loads the tenant.
    """
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = parse_token(settings, token)
    try:
        tenant_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    tenant = session.get(Tenant, tenant_id)
    if not tenant or not tenant.is_active:
        raise HTTPException(status_code=401, detail="Unknown tenant")
    return tenant


def require_admin_key(
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = (settings.ADMIN_KEY or "").strip()
    got = (x_admin_key or "").strip()

    if not expected:
        raise HTTPException(status_code=500, detail="Server misconfigured: ADMIN_KEY not set")
    if got != expected:
        raise HTTPException(status_code=401, detail="Unauthorized: missing or invalid admin key")
