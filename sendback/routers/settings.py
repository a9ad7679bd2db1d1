# sendback/routers/settings.py
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from sendback.db import get_session
from sendback.deps import get_current_tenant
from sendback.models import Tenant
from sendback.routers.serializers import tenant_settings_out
from sendback.schemas import SettingsIn
from sendback.services.tenants import PhoneNumberTaken, update_settings
from sendback.utils.phone import normalize_us_phone

router = APIRouter(prefix="/api", tags=["settings"])


@router.get("/settings")
def get_tenant_settings(tenant: Tenant = Depends(get_current_tenant)):
    return tenant_settings_out(tenant)


@router.patch("/settings")
def patch_tenant_settings(
    body: SettingsIn,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    data = body.model_dump(exclude_unset=True)
    if data.get("phone_number"):
        data["phone_number"] = normalize_us_phone(data["phone_number"])

    try:
        tenant = update_settings(session, tenant, data)
    except PhoneNumberTaken:
        raise HTTPException(status_code=409, detail="Phone number is already used by another account")

    return tenant_settings_out(tenant)
