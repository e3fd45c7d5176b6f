# tutor_earnings/services/pool_calculator.py
from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from tutor_earnings.core.errors import DoubleDistributionError
from tutor_earnings.core.periods import parse_period
from tutor_earnings.core.revenue_policy import PLATFORM_FEE_RATE, split_revenue
from tutor_earnings.models.subscription_revenue_pool import POOL_CALCULATING, SubscriptionRevenuePool
from tutor_earnings.services.engagement_aggregator import EngagementAggregator
from tutor_earnings.services.revenue_repository import RevenueRepository

logger = logging.getLogger(__name__)


class PoolCalculator:
    def __init__(
        self,
        repository: RevenueRepository,
        aggregator: EngagementAggregator,
        *,
        fee_rate: Decimal = PLATFORM_FEE_RATE,
    ) -> None:
        self.repository = repository
        self.aggregator = aggregator
        self.fee_rate = fee_rate

    async def calculate_pool(self, period: str) -> SubscriptionRevenuePool:
        """
        Upsert the period's pool from current subscriptions and engagement.

        An existing CALCULATING pool is overwritten (and its version bumped);
        a DISTRIBUTED pool is never touched. Does not commit.
        """
        bp = parse_period(period)

        pool = await self.repository.get_pool(bp.key, for_update=True)
        if pool is not None and pool.is_distributed:
            raise DoubleDistributionError(
                f"Revenue for {bp.key} already distributed",
                period=bp.key,
            )

        revenue = await self.repository.sum_subscription_revenue(bp.start, bp.end)
        split = split_revenue(revenue, fee_rate=self.fee_rate)
        totals = await self.aggregator.aggregate(bp.key)

        if pool is None:
            pool = SubscriptionRevenuePool(
                id=uuid.uuid4(),
                period=bp.key,
                status=POOL_CALCULATING,
                version=1,
                distributed_at=None,
            )
        else:
            pool.status = POOL_CALCULATING
            pool.version = (pool.version or 0) + 1

        pool.period_start = bp.start
        pool.period_end = bp.end
        pool.total_revenue = split.total_revenue
        pool.platform_fee = split.platform_fee
        pool.teacher_pool = split.teacher_pool
        pool.total_watch_time = totals.total_watch_time
        pool.total_engagements = totals.total_completed

        pool = await self.repository.save_pool(pool)
        logger.info(
            "pool %s: revenue=%s fee=%s teacher_pool=%s watch=%s completed=%s (v%s)",
            bp.key,
            split.total_revenue,
            split.platform_fee,
            split.teacher_pool,
            totals.total_watch_time,
            totals.total_completed,
            pool.version,
        )
        return pool
