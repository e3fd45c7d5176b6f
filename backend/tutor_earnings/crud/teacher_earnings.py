# tutor_earnings/crud/teacher_earnings.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.core.periods import current_period
from tutor_earnings.core.revenue_policy import CURRENCY, ZERO
from tutor_earnings.models.teacher_earning import (
    EARNING_AVAILABLE,
    SOURCE_COLLECTION,
    SOURCE_LESSON,
    SOURCE_LIVE_WORKSHOP,
    SOURCE_SUBSCRIPTION,
    TeacherEarning,
)

# revenue_source -> breakdown bucket
BREAKDOWN_BUCKETS = {
    SOURCE_COLLECTION: "premium",
    SOURCE_SUBSCRIPTION: "subscription",
    SOURCE_LIVE_WORKSHOP: "workshops",
    SOURCE_LESSON: "lessons",
}


@dataclass
class EarningsBreakdown:
    premium: Decimal = ZERO
    subscription: Decimal = ZERO
    workshops: Decimal = ZERO
    lessons: Decimal = ZERO
    total: Decimal = ZERO


@dataclass(frozen=True)
class UpcomingPayout:
    amount: Decimal
    currency: str
    estimated_payout_date: datetime
    earnings_count: int


async def get_earnings_breakdown(
    db: AsyncSession,
    teacher_id: uuid.UUID,
    period: Optional[str] = None,
) -> EarningsBreakdown:
    """
    Net earnings per revenue source. Sources without a bucket still count
    toward `total`.
    """
    stmt = (
        select(TeacherEarning.revenue_source, func.coalesce(func.sum(TeacherEarning.net_amount), 0))
        .where(TeacherEarning.teacher_id == teacher_id)
        .group_by(TeacherEarning.revenue_source)
    )
    if period:
        stmt = stmt.where(TeacherEarning.period == period)

    breakdown = EarningsBreakdown()
    for source, net in (await db.execute(stmt)).all():
        amount = Decimal(str(net or 0))
        bucket = BREAKDOWN_BUCKETS.get(source)
        if bucket:
            setattr(breakdown, bucket, getattr(breakdown, bucket) + amount)
        breakdown.total += amount
    return breakdown


async def get_upcoming_payout(db: AsyncSession, teacher_id: uuid.UUID) -> UpcomingPayout:
    """AVAILABLE (not yet paid) net earnings; payouts run on the 1st of next month."""
    stmt = select(
        func.coalesce(func.sum(TeacherEarning.net_amount), 0),
        func.count(TeacherEarning.id),
    ).where(
        TeacherEarning.teacher_id == teacher_id,
        TeacherEarning.status == EARNING_AVAILABLE,
    )
    total, count = (await db.execute(stmt)).one()

    return UpcomingPayout(
        amount=Decimal(str(total or 0)),
        currency=CURRENCY,
        estimated_payout_date=current_period().next().start,
        earnings_count=int(count or 0),
    )


async def list_earnings_history(
    db: AsyncSession,
    teacher_id: uuid.UUID,
    *,
    limit: int = 50,
) -> list[TeacherEarning]:
    stmt = (
        select(TeacherEarning)
        .where(TeacherEarning.teacher_id == teacher_id)
        .order_by(TeacherEarning.created_at.desc(), TeacherEarning.period.desc())
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all())


async def list_earnings_by_source(
    db: AsyncSession,
    teacher_id: uuid.UUID,
    source: str,
    period: Optional[str] = None,
) -> list[TeacherEarning]:
    stmt = (
        select(TeacherEarning)
        .where(TeacherEarning.teacher_id == teacher_id)
        .where(TeacherEarning.revenue_source == source)
        .order_by(TeacherEarning.created_at.desc())
    )
    if period:
        stmt = stmt.where(TeacherEarning.period == period)
    return list((await db.execute(stmt)).scalars().all())
