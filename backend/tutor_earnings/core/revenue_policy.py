# tutor_earnings/core/revenue_policy.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Hashable, TypeVar

K = TypeVar("K", bound=Hashable)

ZERO = Decimal("0")

# Central policy. Adjust here without rewriting the engine or endpoints.
PLATFORM_FEE_RATE = Decimal("0.30")
SUBSCRIPTION_FEE = Decimal("6.00")
SUBSCRIPTION_DURATION_DAYS = 30
CURRENCY = "USD"


@dataclass(frozen=True)
class PoolSplit:
    total_revenue: Decimal
    platform_fee: Decimal
    teacher_pool: Decimal


@dataclass(frozen=True)
class EntryAmounts:
    amount: Decimal
    platform_fee_amount: Decimal
    net_amount: Decimal


def split_revenue(total_revenue: Decimal, *, fee_rate: Decimal = PLATFORM_FEE_RATE) -> PoolSplit:
    """
    platform_fee = total * rate, teacher_pool = total - platform_fee.
    Subtraction (not total * (1 - rate)) keeps fee + pool == total exactly.
    """
    total = Decimal(total_revenue)
    platform_fee = total * fee_rate
    return PoolSplit(total_revenue=total, platform_fee=platform_fee, teacher_pool=total - platform_fee)


def teacher_share(teacher_watch_time: int, total_watch_time: int, pool_amount: Decimal) -> Decimal:
    if total_watch_time <= 0 or teacher_watch_time <= 0:
        return ZERO
    # multiply first: exact whenever pool * watch divides evenly
    return Decimal(pool_amount) * Decimal(teacher_watch_time) / Decimal(total_watch_time)


def allocate_pool(
    watch_time_by_teacher: Mapping[K, int],
    total_watch_time: int,
    pool_amount: Decimal,
) -> dict[K, Decimal]:
    """
    Proportional split of the teacher pool by watch-time share.

    No rounding and no remainder redistribution: shares partition the pool
    up to Decimal precision. Teachers with no watch time, or whose share
    comes out non-positive (empty pool), are left out.
    """
    shares: dict[K, Decimal] = {}
    for teacher_id, minutes in watch_time_by_teacher.items():
        if minutes <= 0:
            continue
        share = teacher_share(minutes, total_watch_time, pool_amount)
        if share > 0:
            shares[teacher_id] = share
    return shares


def entry_amounts(share: Decimal, *, fee_rate: Decimal = PLATFORM_FEE_RATE) -> EntryAmounts:
    return EntryAmounts(
        amount=share,
        platform_fee_amount=share * fee_rate,
        net_amount=share * (1 - fee_rate),
    )
