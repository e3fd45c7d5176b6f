# tests/test_periods_and_policy.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tutor_earnings.core.errors import PeriodValidationError
from tutor_earnings.core.periods import BillingPeriod, as_utc, parse_period, previous_period
from tutor_earnings.core.revenue_policy import (
    PLATFORM_FEE_RATE,
    allocate_pool,
    entry_amounts,
    split_revenue,
    teacher_share,
)


def test_parse_period_bounds_are_utc_calendar_month():
    bp = parse_period("2025-03")

    assert bp.key == "2025-03"
    assert bp.start == datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert bp.end == datetime(2025, 4, 1, tzinfo=timezone.utc) - timedelta(microseconds=1)


def test_december_rolls_into_next_year():
    bp = parse_period("2024-12")
    assert bp.next() == BillingPeriod(2025, 1)
    assert bp.end.year == 2024 and bp.end.month == 12 and bp.end.day == 31


def test_leap_february_ends_on_the_29th():
    assert parse_period("2024-02").end.day == 29
    assert parse_period("2025-02").end.day == 28


@pytest.mark.parametrize("raw", ["2025-3", "2025-13", "2025-00", "25-03", "march", "", None, "2025-03-01"])
def test_malformed_period_is_rejected(raw):
    with pytest.raises(PeriodValidationError) as exc:
        parse_period(raw)
    assert exc.value.to_detail()["error"] == "INVALID_PERIOD"


def test_previous_period_from_first_of_january():
    moment = datetime(2026, 1, 1, 2, 0, tzinfo=timezone.utc)
    assert previous_period(moment).key == "2025-12"


def test_as_utc_treats_naive_values_as_utc():
    naive = datetime(2025, 3, 1, 12, 0)
    assert as_utc(naive) == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None


def test_split_revenue_conserves_total():
    split = split_revenue(Decimal("12.00"))

    assert split.platform_fee == Decimal("3.60")
    assert split.teacher_pool == Decimal("8.40")
    assert split.platform_fee + split.teacher_pool == split.total_revenue


def test_split_of_zero_revenue_is_zero():
    split = split_revenue(Decimal("0"))
    assert split.platform_fee == 0
    assert split.teacher_pool == 0


def test_teacher_share_is_proportional_without_rounding():
    assert teacher_share(30, 40, Decimal("8.4")) == Decimal("6.3")
    assert teacher_share(10, 40, Decimal("8.4")) == Decimal("2.1")
    assert teacher_share(0, 40, Decimal("8.4")) == 0
    assert teacher_share(10, 0, Decimal("8.4")) == 0


def test_allocate_pool_partitions_pool_and_skips_zero_watch():
    shares = allocate_pool({"a": 1, "b": 1, "c": 1, "idle": 0}, 3, Decimal("10"))

    assert "idle" not in shares
    assert abs(sum(shares.values()) - Decimal("10")) <= Decimal("0.000001")


def test_allocate_pool_with_empty_pool_creates_no_shares():
    assert allocate_pool({"a": 30, "b": 10}, 40, Decimal("0")) == {}


def test_entry_amounts_split_by_fee_rate():
    amounts = entry_amounts(Decimal("6.3"))

    assert amounts.amount == Decimal("6.3")
    assert amounts.platform_fee_amount == Decimal("6.3") * PLATFORM_FEE_RATE
    assert amounts.net_amount == Decimal("6.3") * (1 - PLATFORM_FEE_RATE)
    assert amounts.platform_fee_amount + amounts.net_amount == amounts.amount
