# sendback/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class SettingsIn(BaseModel):
    """PATCH /api/settings. Accepts camelCase (dashboard) or snake_case names."""
    model_config = ConfigDict(populate_by_name=True)

    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", max_length=32)
    auto_response_message: Optional[str] = Field(default=None, alias="autoResponseMessage", max_length=1600)
    business_name: Optional[str] = Field(default=None, alias="businessName", max_length=255)
    email: Optional[EmailStr] = None

    @field_validator("business_name")
    @classmethod
    def business_name_not_null(cls, v):
        if v is None:
            raise ValueError("businessName cannot be null")
        return v


class LeadIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(alias="phoneNumber", min_length=1)
    name: Optional[str] = None
    notes: Optional[str] = None
    source: str = "manual"


class ScheduledMessageIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    recipient_number: str = Field(alias="recipientNumber", min_length=1)
    message: str = Field(min_length=1, max_length=1600)
    scheduled_time: datetime = Field(alias="scheduledTime")


class MessageIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=1600)


class SubscribeIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: int = Field(alias="planId")
    payment_method_id: Optional[str] = Field(default=None, alias="paymentMethodId")
