# tutor_earnings/schemas/subscription.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, constr

PaymentProvider = constr(pattern=r"^(STRIPE|PAYPAL|MANUAL)$")


class SubscriptionCreate(BaseModel):
    provider: Optional[PaymentProvider] = None
    transaction_id: Optional[str] = Field(default=None, max_length=128)


class SubscriptionActivate(BaseModel):
    """Payment confirmation for a PENDING subscription."""
    provider: PaymentProvider
    transaction_id: str = Field(min_length=1, max_length=128)


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    currency: str
    status: str
    provider: Optional[str] = None
    transaction_id: Optional[str] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class SubscriptionFeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: Decimal
    currency: str
    duration_days: int


class SubscriptionStatusOut(BaseModel):
    has_subscription: bool
    is_active: bool
    subscription: Optional[SubscriptionOut] = None
