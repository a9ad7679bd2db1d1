# sendback/routers/billing.py
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlmodel import Session

from sendback.db import get_session
from sendback.deps import get_current_tenant, get_payment_gateway
from sendback.models import Tenant
from sendback.routers.serializers import plan_out
from sendback.schemas import SubscribeIn
from sendback.services.payments import (
    PaymentError,
    PaymentGateway,
    apply_webhook_event,
    cancel,
    list_active_plans,
    subscribe,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


@router.get("/api/billing/plans")
def get_plans(session: Session = Depends(get_session)):
    return [plan_out(p) for p in list_active_plans(session)]


@router.post("/api/billing/subscribe")
def post_subscribe(
    body: SubscribeIn,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        result = subscribe(session, gateway, tenant, body.plan_id, body.payment_method_id)
    except PaymentError as e:
        logger.error("[billing] subscribe failed tenant=%s: %s", tenant.id, e)
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "subscription_id": result["id"],
        "status": result["status"],
        "client_secret": result.get("client_secret"),
    }


@router.post("/api/billing/cancel")
def post_cancel(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        result = cancel(session, gateway, tenant)
    except PaymentError as e:
        logger.error("[billing] cancel failed tenant=%s: %s", tenant.id, e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": result["status"], "canceled_at": result.get("canceled_at")}


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    payload = await request.body()
    try:
        event = gateway.parse_webhook(payload, stripe_signature)
    except PaymentError as e:
        logger.warning("[billing] rejected webhook: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    return apply_webhook_event(session, event)
