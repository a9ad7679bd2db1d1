# sendback/models.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, DateTime, Numeric, UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands datetimes back naive; everything we store is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _ts_column(index: bool = False, nullable: bool = False) -> Column:
    return Column(DateTime(timezone=True), index=index, nullable=nullable)


# Message / usage direction
INBOUND = "inbound"
OUTBOUND = "outbound"

# Notification types
CRITICAL_BALANCE = "critical_balance"
LOW_BALANCE = "low_balance"


# ---------- Tenants ----------


class Tenant(SQLModel, table=True):
    __tablename__ = "tenant"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))
    is_active: bool = Field(default=True, index=True)

    username: str = Field(index=True, unique=True)
    business_name: str = Field(default="", max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)

    # Gateway number callers dial; the tenant directory key
    phone_number: Optional[str] = Field(default=None, max_length=32, index=True, unique=True)
    auto_response_message: Optional[str] = None

    # Billing (synced from the payment processor)
    subscription_plan: Optional[str] = None
    subscription_status: Optional[str] = None
    stripe_customer_id: Optional[str] = Field(default=None, index=True)
    stripe_subscription_id: Optional[str] = None
    credit_balance: Decimal = Field(
        default=Decimal("0"), sa_column=Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    )

    # Balance monitor bookkeeping
    low_balance_notification_sent: bool = Field(default=False)
    last_balance_notification_at: Optional[datetime] = Field(
        default=None, sa_column=_ts_column(nullable=True)
    )


# ---------- Calls & conversations ----------


class MissedCall(SQLModel, table=True):
    __tablename__ = "missed_call"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    caller_number: str
    caller_name: Optional[str] = None
    call_sid: Optional[str] = Field(default=None, index=True)
    timestamp: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))
    responded: bool = Field(default=False)


class Conversation(SQLModel, table=True):
    __tablename__ = "conversation"
    __table_args__ = (
        UniqueConstraint("tenant_id", "phone_number", name="uq_conversation_tenant_phone"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    missed_call_id: Optional[int] = Field(default=None, foreign_key="missed_call.id")
    phone_number: str = Field(index=True)
    last_message_at: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts_column())


class Message(SQLModel, table=True):
    __tablename__ = "message"

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversation.id", index=True)
    content: str
    direction: str = Field(default=OUTBOUND, max_length=16)  # inbound | outbound
    automated: bool = Field(default=False)  # sent by the system, not typed by the tenant
    timestamp: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))
    delivered: bool = Field(default=False)
    provider_sid: Optional[str] = None


# ---------- Leads & scheduling ----------


class Lead(SQLModel, table=True):
    __tablename__ = "lead"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    phone_number: str
    name: Optional[str] = None
    notes: Optional[str] = None
    source: str = Field(default="manual")  # manual / missed_call / sms / web
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))


class ScheduledMessage(SQLModel, table=True):
    __tablename__ = "scheduled_message"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    recipient_number: str
    message: str
    scheduled_time: datetime = Field(sa_column=_ts_column(index=True))
    sent: bool = Field(default=False, index=True)


# ---------- Usage, notifications, billing ----------


class MessageUsage(SQLModel, table=True):
    __tablename__ = "message_usage"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    message_sid: Optional[str] = None
    direction: str = Field(default=OUTBOUND, max_length=16)
    status: str = Field(default="sent", max_length=32)
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))


class Notification(SQLModel, table=True):
    __tablename__ = "notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    type: str = Field(max_length=32)
    message: str
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))


class SubscriptionPlan(SQLModel, table=True):
    __tablename__ = "subscription_plan"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    stripe_price_id: Optional[str] = None
    monthly_price: Decimal = Field(
        default=Decimal("0"), sa_column=Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    )
    message_credits: int = Field(default=0)
    active: bool = Field(default=True, index=True)


class Payment(SQLModel, table=True):
    __tablename__ = "payment"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key="tenant.id", index=True)
    stripe_payment_intent_id: Optional[str] = None
    amount: Decimal = Field(
        default=Decimal("0"), sa_column=Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    )
    status: str = Field(default="succeeded")
    created_at: datetime = Field(default_factory=utcnow, sa_column=_ts_column(index=True))
