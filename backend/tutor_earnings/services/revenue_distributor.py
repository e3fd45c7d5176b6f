# tutor_earnings/services/revenue_distributor.py
"""
Monthly subscription revenue distribution.

  distribute_revenue(period)
    1. calculate (upsert) the period's pool; DISTRIBUTED pools are rejected
    2. no watch time -> flip to DISTRIBUTED, no ledger lines
    3. aggregate engagement per teacher
    4. share_i = teacher_pool * watch_i / total_watch   (no rounding)
    5. one SUBSCRIPTION ledger line per teacher with share_i > 0; each insert
       is isolated, a failure is recorded and the batch continues
    6. CALCULATING -> DISTRIBUTED compare-and-swap, then commit

Everything runs in the repository's single transaction: a lost swap or a
store failure rolls back the pool update and every ledger line together.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from tutor_earnings.core.errors import (
    DoubleDistributionError,
    LedgerEntryError,
    PeriodNotDistributedError,
)
from tutor_earnings.core.periods import BillingPeriod, parse_period, utcnow
from tutor_earnings.core.revenue_policy import (
    CURRENCY,
    PLATFORM_FEE_RATE,
    ZERO,
    allocate_pool,
    entry_amounts,
)
from tutor_earnings.models.subscription_revenue_pool import SubscriptionRevenuePool
from tutor_earnings.models.teacher_earning import EARNING_AVAILABLE, SOURCE_SUBSCRIPTION, TeacherEarning
from tutor_earnings.services.engagement_aggregator import EngagementAggregator, EngagementTotals
from tutor_earnings.services.pool_calculator import PoolCalculator
from tutor_earnings.services.revenue_repository import RevenueRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutOutcome:
    teacher_id: uuid.UUID
    watch_time_minutes: int
    amount: Decimal
    success: bool
    entry_id: Optional[uuid.UUID] = None
    reason: Optional[str] = None


@dataclass
class DistributionResult:
    period: str
    pool_id: Optional[uuid.UUID]
    distributed: int = 0
    total_amount: Decimal = ZERO
    outcomes: list[PayoutOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[PayoutOutcome]:
        return [o for o in self.outcomes if not o.success]


class RevenueDistributor:
    def __init__(
        self,
        repository: RevenueRepository,
        calculator: PoolCalculator,
        aggregator: EngagementAggregator,
        *,
        fee_rate: Decimal = PLATFORM_FEE_RATE,
    ) -> None:
        self.repository = repository
        self.calculator = calculator
        self.aggregator = aggregator
        self.fee_rate = fee_rate

    async def distribute_revenue(self, period: str) -> DistributionResult:
        bp = parse_period(period)
        logger.info("distributing subscription revenue for %s", bp.key)

        try:
            pool = await self.calculator.calculate_pool(bp.key)
            result = DistributionResult(period=bp.key, pool_id=pool.id)

            if pool.total_watch_time == 0:
                await self._mark_distributed(pool)
                await self.repository.commit()
                logger.info("no engagement in %s; pool closed without payouts", bp.key)
                return result

            totals = await self.aggregator.aggregate(bp.key)
            if totals.total_watch_time != pool.total_watch_time:
                logger.warning(
                    "watch time for %s moved during distribution (%s -> %s); using latest",
                    bp.key,
                    pool.total_watch_time,
                    totals.total_watch_time,
                )

            await self._credit_teachers(bp, pool, totals, result, skip=set())
            await self._mark_distributed(pool)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise

        self._log_result(result)
        return result

    async def reconcile(self, period: str) -> DistributionResult:
        """
        Re-create SUBSCRIPTION lines missing from an already distributed period
        (e.g. after a failed insert). Teachers that already have a line are
        left alone; the unique index rejects any duplicate.
        """
        bp = parse_period(period)
        try:
            pool = await self.repository.get_pool(bp.key)
            if pool is None or not pool.is_distributed:
                raise PeriodNotDistributedError(
                    f"Revenue for {bp.key} has not been distributed yet",
                    period=bp.key,
                )

            existing = await self.repository.list_subscription_earnings(bp.key)
            paid = {e.teacher_id for e in existing}

            totals = await self.aggregator.aggregate(bp.key)
            result = DistributionResult(period=bp.key, pool_id=pool.id)
            if totals.total_watch_time > 0:
                await self._credit_teachers(bp, pool, totals, result, skip=paid)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise

        logger.info(
            "reconciled %s: %s existing, %s created, %s failed",
            bp.key,
            len(paid),
            result.distributed,
            len(result.failed),
        )
        return result

    async def _credit_teachers(
        self,
        bp: BillingPeriod,
        pool: SubscriptionRevenuePool,
        totals: EngagementTotals,
        result: DistributionResult,
        *,
        skip: set[uuid.UUID],
    ) -> None:
        shares = allocate_pool(totals.per_teacher_watch_time, totals.total_watch_time, Decimal(pool.teacher_pool))

        # stable order keeps logs and outcome lists comparable between runs
        for teacher_id in sorted(shares, key=str):
            if teacher_id in skip:
                continue
            outcome = await self._credit_teacher(bp, pool, teacher_id, shares[teacher_id], totals)
            result.outcomes.append(outcome)
            if outcome.success:
                result.distributed += 1
                result.total_amount += outcome.amount

    async def _credit_teacher(
        self,
        bp: BillingPeriod,
        pool: SubscriptionRevenuePool,
        teacher_id: uuid.UUID,
        share: Decimal,
        totals: EngagementTotals,
    ) -> PayoutOutcome:
        amounts = entry_amounts(share, fee_rate=self.fee_rate)
        watch = totals.per_teacher_watch_time.get(teacher_id, 0)

        entry = TeacherEarning(
            id=uuid.uuid4(),
            teacher_id=teacher_id,
            period=bp.key,
            period_start=bp.start,
            period_end=bp.end,
            revenue_source=SOURCE_SUBSCRIPTION,
            watch_time_minutes=watch,
            engaged_students=totals.per_teacher_completed.get(teacher_id, 0),
            amount=amounts.amount,
            platform_fee_percent=self.fee_rate,
            platform_fee_amount=amounts.platform_fee_amount,
            net_amount=amounts.net_amount,
            currency=CURRENCY,
            status=EARNING_AVAILABLE,
            revenue_pool_id=pool.id,
        )

        try:
            await self.repository.add_earning(entry)
        except LedgerEntryError as e:
            logger.warning(
                "payout for teacher %s in %s failed (%s); continuing",
                teacher_id,
                bp.key,
                e.message,
            )
            return PayoutOutcome(
                teacher_id=teacher_id,
                watch_time_minutes=watch,
                amount=share,
                success=False,
                reason=e.message,
            )

        return PayoutOutcome(
            teacher_id=teacher_id,
            watch_time_minutes=watch,
            amount=share,
            success=True,
            entry_id=entry.id,
        )

    async def _mark_distributed(self, pool: SubscriptionRevenuePool) -> None:
        swapped = await self.repository.mark_pool_distributed(pool, utcnow())
        if not swapped:
            raise DoubleDistributionError(
                f"Revenue for {pool.period} was distributed by a concurrent run",
                period=pool.period,
            )

    @staticmethod
    def _log_result(result: DistributionResult) -> None:
        if result.failed:
            logger.warning(
                "distributed %s: %s entries, total %s, %s failed: %s",
                result.period,
                result.distributed,
                result.total_amount,
                len(result.failed),
                ", ".join(str(o.teacher_id) for o in result.failed),
            )
        else:
            logger.info(
                "distributed %s: %s entries, total %s",
                result.period,
                result.distributed,
                result.total_amount,
            )
