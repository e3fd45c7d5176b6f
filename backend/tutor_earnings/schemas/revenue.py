# tutor_earnings/schemas/revenue.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PeriodRequest(BaseModel):
    """
    Body for the admin revenue jobs.
    `period` is "YYYY-MM"; omitted means the previous calendar month (UTC).
    Format errors are reported by the engine (400), not by validation (422).
    """
    period: Optional[str] = Field(default=None, max_length=16, examples=["2025-03"])


class PayoutOutcomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    teacher_id: UUID
    watch_time_minutes: int
    amount: Decimal
    success: bool
    entry_id: Optional[UUID] = None
    reason: Optional[str] = None


class DistributionOut(BaseModel):
    period: str
    pool_id: Optional[UUID] = None
    distributed: int
    failed: int
    total_amount: Decimal
    outcomes: list[PayoutOutcomeOut]


class PoolOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    period: str
    period_start: datetime
    period_end: datetime

    total_revenue: Decimal
    platform_fee: Decimal
    teacher_pool: Decimal

    total_watch_time: int
    total_engagements: int

    status: str
    version: int
    distributed_at: Optional[datetime] = None


class JobsStatusOut(BaseModel):
    scheduler_enabled: bool
    latest_distribution: Optional[PoolOut] = None


class ExpiredSubscriptionsOut(BaseModel):
    expired: int
