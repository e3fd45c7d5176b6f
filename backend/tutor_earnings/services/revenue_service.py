# tutor_earnings/services/revenue_service.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.core.periods import parse_period
from tutor_earnings.models.subscription_revenue_pool import SubscriptionRevenuePool
from tutor_earnings.services.engagement_aggregator import EngagementAggregator
from tutor_earnings.services.pool_calculator import PoolCalculator
from tutor_earnings.services.revenue_distributor import DistributionResult, RevenueDistributor
from tutor_earnings.services.revenue_repository import RevenueRepository, SqlRevenueRepository


class SubscriptionRevenueService:
    """Entry point used by the admin routes and the scheduler."""

    def __init__(
        self,
        repository: RevenueRepository,
        calculator: PoolCalculator,
        distributor: RevenueDistributor,
    ) -> None:
        self.repository = repository
        self.calculator = calculator
        self.distributor = distributor

    async def calculate_pool(self, period: str) -> SubscriptionRevenuePool:
        try:
            pool = await self.calculator.calculate_pool(period)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise
        return pool

    async def distribute_revenue(self, period: str) -> DistributionResult:
        return await self.distributor.distribute_revenue(period)

    async def reconcile(self, period: str) -> DistributionResult:
        return await self.distributor.reconcile(period)

    async def get_pool(self, period: str) -> Optional[SubscriptionRevenuePool]:
        return await self.repository.get_pool(parse_period(period).key)

    async def get_latest_distribution(self) -> Optional[SubscriptionRevenuePool]:
        return await self.repository.get_latest_distributed_pool()


def build_revenue_service(db: AsyncSession) -> SubscriptionRevenueService:
    """Compose the engine over one session; build one per request/job."""
    repository = SqlRevenueRepository(db)
    aggregator = EngagementAggregator(repository)
    calculator = PoolCalculator(repository, aggregator)
    distributor = RevenueDistributor(repository, calculator, aggregator)
    return SubscriptionRevenueService(repository, calculator, distributor)
