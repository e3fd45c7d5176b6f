# tests/test_revenue_distributor.py
"""
Engine tests over the in-memory repository (see conftest.InMemoryRevenueRepository).
"""
from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from tutor_earnings.core.errors import (
    DoubleDistributionError,
    PeriodNotDistributedError,
    PeriodValidationError,
)
from tutor_earnings.core.revenue_policy import PLATFORM_FEE_RATE
from tutor_earnings.models.subscription_revenue_pool import POOL_CALCULATING, POOL_DISTRIBUTED
from tutor_earnings.models.teacher_earning import SOURCE_SUBSCRIPTION
from tutor_earnings.services.engagement_aggregator import EngagementAggregator
from tutor_earnings.services.pool_calculator import PoolCalculator
from tutor_earnings.services.revenue_distributor import RevenueDistributor

EPS = Decimal("0.000001")
PERIOD = "2025-03"


def build_engine(repo):
    aggregator = EngagementAggregator(repo)
    calculator = PoolCalculator(repo, aggregator)
    distributor = RevenueDistributor(repo, calculator, aggregator)
    return aggregator, calculator, distributor


def seed_march(repo):
    """Two $6 subscriptions; teacher A 30 min, teacher B 10 min."""
    a, b = uuid.uuid4(), uuid.uuid4()
    repo.revenue[PERIOD] = Decimal("12.00")
    repo.add_engagement(PERIOD, a, 20, completed=True)
    repo.add_engagement(PERIOD, a, 10)
    repo.add_engagement(PERIOD, b, 10, completed=True)
    return a, b


@pytest.mark.asyncio
async def test_aggregate_groups_by_teacher_and_skips_unresolved(memory_repo):
    a, b = seed_march(memory_repo)
    memory_repo.add_engagement(PERIOD, None, 500, completed=True)
    memory_repo.add_engagement(PERIOD, b, 0, completed=True)

    totals = await EngagementAggregator(memory_repo).aggregate(PERIOD)

    assert totals.total_watch_time == 40
    assert totals.per_teacher_watch_time == {a: 30, b: 10}
    # zero-minute completion still counts
    assert totals.total_completed == 3
    assert totals.per_teacher_completed == {a: 1, b: 2}
    assert totals.unresolved_records == 1


@pytest.mark.asyncio
async def test_calculate_pool_is_idempotent(memory_repo):
    seed_march(memory_repo)
    _, calculator, _ = build_engine(memory_repo)

    first = await calculator.calculate_pool(PERIOD)
    await memory_repo.commit()
    snapshot = (first.total_revenue, first.platform_fee, first.teacher_pool, first.total_watch_time)

    second = await calculator.calculate_pool(PERIOD)
    await memory_repo.commit()

    assert second.id == first.id
    assert (second.total_revenue, second.platform_fee, second.teacher_pool, second.total_watch_time) == snapshot
    assert second.status == POOL_CALCULATING
    assert second.version == 2
    assert abs(second.platform_fee + second.teacher_pool - second.total_revenue) <= EPS


@pytest.mark.asyncio
async def test_march_example_distribution(memory_repo):
    a, b = seed_march(memory_repo)
    _, _, distributor = build_engine(memory_repo)

    result = await distributor.distribute_revenue(PERIOD)

    assert result.distributed == 2
    assert result.total_amount == Decimal("8.4")
    assert result.failed == []

    by_teacher = {e.teacher_id: e for e in memory_repo.earnings}
    assert by_teacher[a].amount == Decimal("6.3")
    assert by_teacher[b].amount == Decimal("2.1")
    assert by_teacher[a].watch_time_minutes == 30
    assert by_teacher[b].engaged_students == 1

    pool = memory_repo.stored_pool(PERIOD)
    assert pool["status"] == POOL_DISTRIBUTED
    assert pool["distributed_at"] is not None
    assert pool["total_revenue"] == Decimal("12.00")
    assert pool["platform_fee"] == Decimal("3.6")
    assert pool["teacher_pool"] == Decimal("8.4")
    assert all(e.revenue_pool_id == pool["id"] for e in memory_repo.earnings)


@pytest.mark.asyncio
async def test_entries_conserve_pool_and_apply_fee(memory_repo):
    memory_repo.revenue[PERIOD] = Decimal("42.00")
    for minutes in (7, 11, 13, 1):
        memory_repo.add_engagement(PERIOD, uuid.uuid4(), minutes)
    _, _, distributor = build_engine(memory_repo)

    await distributor.distribute_revenue(PERIOD)

    pool = memory_repo.stored_pool(PERIOD)
    amounts = [e.amount for e in memory_repo.earnings]
    assert len(amounts) == 4
    assert abs(sum(amounts) - pool["teacher_pool"]) <= EPS

    for e in memory_repo.earnings:
        assert e.revenue_source == SOURCE_SUBSCRIPTION
        assert e.net_amount == e.amount * (1 - PLATFORM_FEE_RATE)
        assert e.platform_fee_amount == e.amount * PLATFORM_FEE_RATE
        assert e.platform_fee_percent == PLATFORM_FEE_RATE

    assert abs(sum(e.net_amount for e in memory_repo.earnings) - pool["teacher_pool"] * (1 - PLATFORM_FEE_RATE)) <= EPS


@pytest.mark.asyncio
async def test_orphaned_minutes_stay_out_of_pool_totals(memory_repo):
    a, b = seed_march(memory_repo)
    memory_repo.add_engagement(PERIOD, None, 60, completed=True)
    _, _, distributor = build_engine(memory_repo)

    result = await distributor.distribute_revenue(PERIOD)

    pool = memory_repo.stored_pool(PERIOD)
    assert pool["total_watch_time"] == 40
    assert pool["total_engagements"] == 2
    # shares still use the resolved minutes, so the pool is fully paid out
    assert result.total_amount == Decimal("8.4")
    assert {e.teacher_id for e in memory_repo.earnings} == {a, b}


@pytest.mark.asyncio
async def test_zero_engagement_closes_pool_without_entries(memory_repo):
    memory_repo.revenue[PERIOD] = Decimal("18.00")
    _, _, distributor = build_engine(memory_repo)

    result = await distributor.distribute_revenue(PERIOD)

    assert result.distributed == 0
    assert result.total_amount == 0
    assert memory_repo.earnings == []
    assert memory_repo.stored_pool(PERIOD)["status"] == POOL_DISTRIBUTED


@pytest.mark.asyncio
async def test_no_entry_for_zero_watch_teacher(memory_repo):
    a, b = seed_march(memory_repo)
    idle = uuid.uuid4()
    memory_repo.add_engagement(PERIOD, idle, 0, completed=True)
    _, _, distributor = build_engine(memory_repo)

    result = await distributor.distribute_revenue(PERIOD)

    assert {e.teacher_id for e in memory_repo.earnings} == {a, b}
    assert idle not in {o.teacher_id for o in result.outcomes}


@pytest.mark.asyncio
async def test_zero_revenue_with_engagement_creates_no_entries(memory_repo):
    memory_repo.add_engagement(PERIOD, uuid.uuid4(), 25)
    _, _, distributor = build_engine(memory_repo)

    result = await distributor.distribute_revenue(PERIOD)

    assert result.distributed == 0
    assert memory_repo.earnings == []
    assert memory_repo.stored_pool(PERIOD)["status"] == POOL_DISTRIBUTED


@pytest.mark.asyncio
async def test_second_distribution_is_rejected(memory_repo):
    seed_march(memory_repo)
    _, _, distributor = build_engine(memory_repo)
    await distributor.distribute_revenue(PERIOD)
    version = memory_repo.stored_pool(PERIOD)["version"]

    with pytest.raises(DoubleDistributionError) as exc:
        await distributor.distribute_revenue(PERIOD)

    assert exc.value.period == PERIOD
    assert len(memory_repo.earnings) == 2
    assert memory_repo.stored_pool(PERIOD)["version"] == version


@pytest.mark.asyncio
async def test_distributed_pool_is_never_recalculated(memory_repo):
    seed_march(memory_repo)
    _, calculator, distributor = build_engine(memory_repo)
    await distributor.distribute_revenue(PERIOD)

    memory_repo.revenue[PERIOD] = Decimal("600.00")
    with pytest.raises(DoubleDistributionError):
        await calculator.calculate_pool(PERIOD)

    assert memory_repo.stored_pool(PERIOD)["total_revenue"] == Decimal("12.00")


@pytest.mark.asyncio
async def test_lost_status_race_rolls_back_every_entry(memory_repo):
    seed_march(memory_repo)
    memory_repo.lose_status_race = True
    _, _, distributor = build_engine(memory_repo)

    with pytest.raises(DoubleDistributionError):
        await distributor.distribute_revenue(PERIOD)

    assert memory_repo.earnings == []
    assert memory_repo.stored_pool(PERIOD) is None
    assert memory_repo.rollbacks == 1


@pytest.mark.asyncio
async def test_one_failed_entry_does_not_stop_the_batch(memory_repo):
    a, b = seed_march(memory_repo)
    memory_repo.fail_for.add(a)
    _, _, distributor = build_engine(memory_repo)

    result = await distributor.distribute_revenue(PERIOD)

    assert result.distributed == 1
    assert result.total_amount == Decimal("2.1")
    assert [o.teacher_id for o in result.failed] == [a]
    assert result.failed[0].reason == "simulated insert failure"
    assert [e.teacher_id for e in memory_repo.earnings] == [b]
    assert memory_repo.stored_pool(PERIOD)["status"] == POOL_DISTRIBUTED


@pytest.mark.asyncio
async def test_reconcile_fills_missing_entry_once(memory_repo):
    a, b = seed_march(memory_repo)
    memory_repo.fail_for.add(a)
    _, _, distributor = build_engine(memory_repo)
    await distributor.distribute_revenue(PERIOD)

    memory_repo.fail_for.clear()
    fixed = await distributor.reconcile(PERIOD)

    assert fixed.distributed == 1
    assert [o.teacher_id for o in fixed.outcomes] == [a]
    assert fixed.total_amount == Decimal("6.3")
    assert sorted(e.amount for e in memory_repo.earnings) == [Decimal("2.1"), Decimal("6.3")]

    again = await distributor.reconcile(PERIOD)
    assert again.distributed == 0
    assert again.outcomes == []
    assert len(memory_repo.earnings) == 2


@pytest.mark.asyncio
async def test_reconcile_requires_distributed_period(memory_repo):
    seed_march(memory_repo)
    _, calculator, distributor = build_engine(memory_repo)

    with pytest.raises(PeriodNotDistributedError):
        await distributor.reconcile(PERIOD)

    await calculator.calculate_pool(PERIOD)
    await memory_repo.commit()
    with pytest.raises(PeriodNotDistributedError):
        await distributor.reconcile(PERIOD)


@pytest.mark.asyncio
async def test_invalid_period_touches_nothing(memory_repo):
    _, _, distributor = build_engine(memory_repo)

    with pytest.raises(PeriodValidationError):
        await distributor.distribute_revenue("2025-3")

    assert memory_repo.commits == 0
    assert memory_repo.stored_pool("2025-03") is None
