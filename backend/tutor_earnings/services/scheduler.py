# tutor_earnings/services/scheduler.py
"""
Scheduled jobs.

  monthly_revenue_distribution   1st of the month, 02:00 UTC, previous month
  expired_subscription_check     daily, 00:00 UTC

Each run opens its own session. The monthly job checks the pool first and
skips a period that is already DISTRIBUTED; if a concurrent admin call wins
the race anyway, the engine rejects the second run and the job just logs it.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.core.config import settings
from tutor_earnings.core.errors import DoubleDistributionError
from tutor_earnings.core.periods import previous_period
from tutor_earnings.db.session import session_scope
from tutor_earnings.services.revenue_distributor import DistributionResult
from tutor_earnings.services.revenue_service import build_revenue_service
from tutor_earnings.services.subscription_service import build_subscription_service

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

MONTHLY_DISTRIBUTION_JOB_ID = "monthly_revenue_distribution"
EXPIRED_SUBSCRIPTIONS_JOB_ID = "expired_subscription_check"


async def run_monthly_distribution(
    session_factory: SessionFactory = session_scope,
    *,
    now: Optional[datetime] = None,
) -> Optional[DistributionResult]:
    period = previous_period(now).key

    async with session_factory() as db:
        service = build_revenue_service(db)

        pool = await service.get_pool(period)
        if pool is not None and pool.is_distributed:
            logger.info("revenue for %s already distributed; skipping", period)
            return None

        try:
            return await service.distribute_revenue(period)
        except DoubleDistributionError as e:
            logger.info("monthly distribution for %s skipped: %s", period, e.message)
            return None


async def run_expired_subscription_check(session_factory: SessionFactory = session_scope) -> int:
    async with session_factory() as db:
        return await build_subscription_service(db).check_expired_subscriptions()


def build_scheduler(session_factory: SessionFactory = session_scope) -> AsyncIOScheduler:
    tz = settings.SCHEDULER_TIMEZONE
    scheduler = AsyncIOScheduler(timezone=tz)

    scheduler.add_job(
        run_monthly_distribution,
        CronTrigger(day=1, hour=2, minute=0, timezone=tz),
        args=[session_factory],
        id=MONTHLY_DISTRIBUTION_JOB_ID,
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    scheduler.add_job(
        run_expired_subscription_check,
        CronTrigger(hour=0, minute=0, timezone=tz),
        args=[session_factory],
        id=EXPIRED_SUBSCRIPTIONS_JOB_ID,
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    return scheduler
