# tutor_earnings/api/v1/admin_jobs.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tutor_earnings.api.deps.auth import require_admin
from tutor_earnings.api.deps.revenue import get_revenue_service, get_subscription_service
from tutor_earnings.core.config import settings
from tutor_earnings.core.errors import (
    DoubleDistributionError,
    PeriodNotDistributedError,
    PeriodValidationError,
    RevenueError,
)
from tutor_earnings.core.periods import previous_period
from tutor_earnings.models.user import User
from tutor_earnings.schemas.revenue import (
    DistributionOut,
    ExpiredSubscriptionsOut,
    JobsStatusOut,
    PayoutOutcomeOut,
    PeriodRequest,
    PoolOut,
)
from tutor_earnings.services.revenue_distributor import DistributionResult
from tutor_earnings.services.revenue_service import SubscriptionRevenueService
from tutor_earnings.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/jobs", tags=["admin-jobs"])


def _http_error(e: RevenueError) -> HTTPException:
    if isinstance(e, PeriodValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, (DoubleDistributionError, PeriodNotDistributedError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=e.to_detail())


def _resolve_period(payload: PeriodRequest | None) -> str:
    if payload is not None and payload.period:
        return payload.period
    return previous_period().key


def _to_distribution_out(result: DistributionResult) -> DistributionOut:
    return DistributionOut(
        period=result.period,
        pool_id=result.pool_id,
        distributed=result.distributed,
        failed=len(result.failed),
        total_amount=result.total_amount,
        outcomes=[PayoutOutcomeOut.model_validate(o) for o in result.outcomes],
    )


@router.post("/distribute-revenue", response_model=DistributionOut)
async def distribute_revenue(
    payload: PeriodRequest | None = None,
    admin: User = Depends(require_admin),
    service: SubscriptionRevenueService = Depends(get_revenue_service),
):
    """
    Distribute a period's subscription revenue to teachers.
    Body: {"period": "YYYY-MM"} (optional; defaults to the previous month)
    409 if the period is already distributed.
    """
    period = _resolve_period(payload)
    logger.info("admin %s triggered revenue distribution for %s", admin.id, period)
    try:
        result = await service.distribute_revenue(period)
    except RevenueError as e:
        raise _http_error(e)
    return _to_distribution_out(result)


@router.post("/reconcile-revenue", response_model=DistributionOut)
async def reconcile_revenue(
    payload: PeriodRequest | None = None,
    admin: User = Depends(require_admin),
    service: SubscriptionRevenueService = Depends(get_revenue_service),
):
    """Create ledger entries missing from an already distributed period."""
    period = _resolve_period(payload)
    logger.info("admin %s triggered revenue reconciliation for %s", admin.id, period)
    try:
        result = await service.reconcile(period)
    except RevenueError as e:
        raise _http_error(e)
    return _to_distribution_out(result)


@router.post("/calculate-pool", response_model=PoolOut)
async def calculate_pool(
    payload: PeriodRequest | None = None,
    admin: User = Depends(require_admin),
    service: SubscriptionRevenueService = Depends(get_revenue_service),
):
    """Recompute (preview) an open period's pool without paying anyone."""
    try:
        pool = await service.calculate_pool(_resolve_period(payload))
    except RevenueError as e:
        raise _http_error(e)
    return PoolOut.model_validate(pool)


@router.get("/status", response_model=JobsStatusOut)
async def jobs_status(
    admin: User = Depends(require_admin),
    service: SubscriptionRevenueService = Depends(get_revenue_service),
):
    try:
        latest = await service.get_latest_distribution()
    except RevenueError as e:
        raise _http_error(e)
    return JobsStatusOut(
        scheduler_enabled=settings.SCHEDULER_ENABLED,
        latest_distribution=PoolOut.model_validate(latest) if latest else None,
    )


@router.post("/check-expired-subscriptions", response_model=ExpiredSubscriptionsOut)
async def check_expired_subscriptions(
    admin: User = Depends(require_admin),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    expired = await subscriptions.check_expired_subscriptions()
    return ExpiredSubscriptionsOut(expired=expired)
