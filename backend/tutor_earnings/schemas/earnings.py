# tutor_earnings/schemas/earnings.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class TeacherEarningOut(BaseModel):
    id: UUID
    period: str
    revenue_source: str
    source_id: Optional[UUID] = None

    watch_time_minutes: int
    engaged_students: int

    amount: Decimal
    platform_fee_percent: Decimal
    platform_fee_amount: Decimal
    net_amount: Decimal
    currency: str
    status: str

    revenue_pool_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class EarningsListOut(BaseModel):
    items: List[TeacherEarningOut]
    total: int


class EarningsBreakdownAmounts(BaseModel):
    premium: Decimal
    subscription: Decimal
    workshops: Decimal
    lessons: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class EarningsBreakdownOut(BaseModel):
    period: str  # "all" when not filtered
    breakdown: EarningsBreakdownAmounts


class UpcomingPayoutOut(BaseModel):
    amount: Decimal
    currency: str
    estimated_payout_date: datetime
    earnings_count: int

    class Config:
        from_attributes = True
