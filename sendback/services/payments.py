# sendback/services/payments.py
"""
Billing is delegated to the payment processor. This module only keeps the
tenant's subscription fields and credit balance in sync with it.

PaymentGateway is the seam: StripePaymentGateway talks to Stripe,
FakePaymentGateway returns deterministic objects for dev and tests.
"""
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import stripe
from sqlmodel import Session, select

from sendback.config import Settings
from sendback.models import Payment, SubscriptionPlan, Tenant

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """The payment processor rejected the request or the webhook."""


class PaymentGateway:
    """Interface for subscription billing providers."""

    def create_customer(self, tenant: Tenant) -> str:
        raise NotImplementedError

    def create_subscription(self, tenant: Tenant, plan: SubscriptionPlan,
                            payment_method_id: Optional[str] = None) -> Dict[str, Any]:
        raise NotImplementedError

    def cancel_subscription(self, tenant: Tenant) -> Dict[str, Any]:
        raise NotImplementedError

    def parse_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        raise NotImplementedError


class StripePaymentGateway(PaymentGateway):
    def __init__(self, settings: Settings):
        if not settings.STRIPE_SECRET_KEY:
            raise PaymentError("Stripe is not configured. Set STRIPE_SECRET_KEY.")
        self.settings = settings
        self._client = stripe.StripeClient(settings.STRIPE_SECRET_KEY)

    def create_customer(self, tenant: Tenant) -> str:
        try:
            customer = self._client.customers.create(params={
                "email": tenant.email or None,
                "name": tenant.business_name or tenant.username,
                "metadata": {"tenant_id": str(tenant.id)},
            })
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e
        return customer.id

    def create_subscription(self, tenant: Tenant, plan: SubscriptionPlan,
                            payment_method_id: Optional[str] = None) -> Dict[str, Any]:
        if not tenant.stripe_customer_id:
            raise PaymentError("Tenant does not have a Stripe customer ID")
        if not plan.stripe_price_id:
            raise PaymentError("Invalid subscription plan")
        params: Dict[str, Any] = {
            "customer": tenant.stripe_customer_id,
            "items": [{"price": plan.stripe_price_id}],
            "payment_behavior": "default_incomplete",
            "payment_settings": {
                "payment_method_types": ["card"],
                "save_default_payment_method": "on_subscription",
            },
            "expand": ["latest_invoice.payment_intent"],
        }
        if payment_method_id:
            params["default_payment_method"] = payment_method_id
        try:
            sub = self._client.subscriptions.create(params=params)
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e

        client_secret = None
        invoice = getattr(sub, "latest_invoice", None)
        intent = getattr(invoice, "payment_intent", None) if invoice is not None else None
        if intent is not None and not isinstance(intent, str):
            client_secret = getattr(intent, "client_secret", None)
        return {"id": sub.id, "status": sub.status, "client_secret": client_secret}

    def cancel_subscription(self, tenant: Tenant) -> Dict[str, Any]:
        if not tenant.stripe_subscription_id:
            raise PaymentError("No active subscription found")
        try:
            sub = self._client.subscriptions.cancel(tenant.stripe_subscription_id)
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e
        return {"id": sub.id, "status": sub.status, "canceled_at": sub.canceled_at}

    def parse_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if not self.settings.STRIPE_WEBHOOK_SECRET:
            raise PaymentError("STRIPE_WEBHOOK_SECRET environment variable is required")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.settings.STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise PaymentError(f"Webhook Error: {e}") from e
        return event.to_dict()


class FakePaymentGateway(PaymentGateway):
    """Deterministic stand-in used outside production."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def create_customer(self, tenant: Tenant) -> str:
        return f"cus_mock_{tenant.id}"

    def create_subscription(self, tenant: Tenant, plan: SubscriptionPlan,
                            payment_method_id: Optional[str] = None) -> Dict[str, Any]:
        return {"id": f"sub_mock_{tenant.id}", "status": "active", "client_secret": "mock_client_secret"}

    def cancel_subscription(self, tenant: Tenant) -> Dict[str, Any]:
        return {"id": tenant.stripe_subscription_id or f"sub_mock_{tenant.id}", "status": "canceled",
                "canceled_at": None}

    def parse_webhook(self, payload: bytes, signature: str) -> Dict[str, Any]:
        try:
            event = json.loads(payload or b"{}")
        except ValueError as e:
            raise PaymentError(f"Webhook Error: {e}") from e
        if not isinstance(event, dict) or "type" not in event:
            raise PaymentError("Webhook Error: missing event type")
        self.events.append(event)
        return event


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    if settings.PAYMENTS_MODE == "stripe":
        return StripePaymentGateway(settings)
    logger.info("[payments] using fake payment gateway (PAYMENTS_MODE=%s)", settings.PAYMENTS_MODE)
    return FakePaymentGateway()


# ---------- subscription lifecycle ----------


def list_active_plans(session: Session) -> List[SubscriptionPlan]:
    return list(session.exec(
        select(SubscriptionPlan).where(SubscriptionPlan.active == True).order_by(SubscriptionPlan.monthly_price)  # noqa: E712
    ).all())


def subscribe(session: Session, gateway: PaymentGateway, tenant: Tenant, plan_id: int,
              payment_method_id: Optional[str] = None) -> Dict[str, Any]:
    plan = session.get(SubscriptionPlan, plan_id)
    if not plan or not plan.active:
        raise PaymentError("Invalid subscription plan")

    if not tenant.stripe_customer_id:
        tenant.stripe_customer_id = gateway.create_customer(tenant)

    result = gateway.create_subscription(tenant, plan, payment_method_id)
    tenant.stripe_subscription_id = result["id"]
    tenant.subscription_plan = plan.name
    tenant.subscription_status = result["status"]
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    logger.info("[payments] tenant=%s subscribed plan=%s status=%s", tenant.id, plan.name, result["status"])
    return result


def cancel(session: Session, gateway: PaymentGateway, tenant: Tenant) -> Dict[str, Any]:
    result = gateway.cancel_subscription(tenant)
    tenant.subscription_status = result["status"]
    session.add(tenant)
    session.commit()
    logger.info("[payments] tenant=%s subscription canceled", tenant.id)
    return result


# ---------- webhook sync ----------


def _tenant_for_customer(session: Session, customer_id: Optional[str]) -> Optional[Tenant]:
    if not customer_id:
        return None
    return session.exec(select(Tenant).where(Tenant.stripe_customer_id == customer_id)).first()


def _credits_for_invoice(session: Session, tenant: Tenant, amount_paid_cents: int) -> Decimal:
    """Plan's message credits when we know the plan, else one credit per dollar."""
    if tenant.subscription_plan:
        plan = session.exec(
            select(SubscriptionPlan).where(SubscriptionPlan.name == tenant.subscription_plan)
        ).first()
        if plan and plan.message_credits:
            return Decimal(plan.message_credits)
    return (Decimal(amount_paid_cents) / Decimal(100)).quantize(Decimal("0.01"))


def apply_webhook_event(session: Session, event: Dict[str, Any]) -> Dict[str, Any]:
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}
    customer = obj.get("customer")
    tenant = _tenant_for_customer(session, customer)

    if tenant is None:
        logger.info("[payments] webhook %s for unknown customer=%s ignored", event_type, customer)
        return {"received": True}

    if event_type in (
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    ):
        tenant.subscription_status = obj.get("status")
        session.add(tenant)

    elif event_type == "invoice.paid":
        amount_paid = int(obj.get("amount_paid") or 0)
        session.add(Payment(
            tenant_id=tenant.id,
            stripe_payment_intent_id=obj.get("payment_intent"),
            amount=Decimal(amount_paid) / Decimal(100),
            status="succeeded",
        ))
        credits = _credits_for_invoice(session, tenant, amount_paid)
        tenant.credit_balance = Decimal(tenant.credit_balance or 0) + credits
        session.add(tenant)
        logger.info("[payments] tenant=%s invoice paid; +%s credits", tenant.id, credits)

    elif event_type == "invoice.payment_failed":
        session.add(Payment(
            tenant_id=tenant.id,
            stripe_payment_intent_id=obj.get("payment_intent"),
            amount=Decimal(int(obj.get("amount_due") or 0)) / Decimal(100),
            status="failed",
        ))
        logger.warning("[payments] tenant=%s invoice payment failed", tenant.id)

    else:
        logger.debug("[payments] unhandled event type=%s", event_type)

    session.commit()
    return {"received": True}
