# sendback/routers/usage.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from sendback.db import get_session
from sendback.deps import get_current_tenant
from sendback.models import Tenant
from sendback.services.usage import credit_usage_report

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/credit-usage")
def get_credit_usage(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return credit_usage_report(session, tenant)
