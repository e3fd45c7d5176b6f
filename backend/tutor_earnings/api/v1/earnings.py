# tutor_earnings/api/v1/earnings.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.api.deps.auth import require_teacher
from tutor_earnings.core.errors import PeriodValidationError
from tutor_earnings.core.periods import parse_period
from tutor_earnings.crud.teacher_earnings import (
    get_earnings_breakdown,
    get_upcoming_payout,
    list_earnings_by_source,
    list_earnings_history,
)
from tutor_earnings.db.session import get_db
from tutor_earnings.models.teacher_earning import REVENUE_SOURCES
from tutor_earnings.models.user import User
from tutor_earnings.schemas.earnings import (
    EarningsBreakdownAmounts,
    EarningsBreakdownOut,
    EarningsListOut,
    TeacherEarningOut,
    UpcomingPayoutOut,
)

router = APIRouter(prefix="/earnings", tags=["earnings"])


def _period_or_400(period: Optional[str]) -> Optional[str]:
    if not period:
        return None
    try:
        return parse_period(period).key
    except PeriodValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())


@router.get("/breakdown", response_model=EarningsBreakdownOut)
async def earnings_breakdown(
    period: Optional[str] = Query(None, description="YYYY-MM; all periods when omitted"),
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    """
    Net earnings by revenue source:
      premium (COLLECTION), subscription, workshops (LIVE_WORKSHOP), lessons, total
    """
    key = _period_or_400(period)
    breakdown = await get_earnings_breakdown(db, teacher.id, key)
    return EarningsBreakdownOut(
        period=key or "all",
        breakdown=EarningsBreakdownAmounts.model_validate(breakdown),
    )


@router.get("/upcoming-payout", response_model=UpcomingPayoutOut)
async def upcoming_payout(
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return UpcomingPayoutOut.model_validate(await get_upcoming_payout(db, teacher.id))


@router.get("/history", response_model=EarningsListOut)
async def earnings_history(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    rows = await list_earnings_history(db, teacher.id, limit=limit)
    return EarningsListOut(items=[TeacherEarningOut.model_validate(r) for r in rows], total=len(rows))


@router.get("/by-source", response_model=EarningsListOut)
async def earnings_by_source(
    source: str = Query(..., description="SUBSCRIPTION | COLLECTION | LESSON | LIVE_WORKSHOP"),
    period: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    src = source.strip().upper()
    if src not in REVENUE_SOURCES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid source. Allowed: {', '.join(REVENUE_SOURCES)}",
        )

    rows = await list_earnings_by_source(db, teacher.id, src, _period_or_400(period))
    return EarningsListOut(items=[TeacherEarningOut.model_validate(r) for r in rows], total=len(rows))
