# tutor_earnings/core/periods.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from tutor_earnings.core.errors import PeriodValidationError

PERIOD_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BillingPeriod:
    """
    A calendar month in UTC.
      start = first instant of the month
      end   = last representable instant (next month start - 1 microsecond)
    """

    year: int
    month: int

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)

    @property
    def end(self) -> datetime:
        return self.next().start - timedelta(microseconds=1)

    def next(self) -> "BillingPeriod":
        if self.month == 12:
            return BillingPeriod(self.year + 1, 1)
        return BillingPeriod(self.year, self.month + 1)

    def previous(self) -> "BillingPeriod":
        if self.month == 1:
            return BillingPeriod(self.year - 1, 12)
        return BillingPeriod(self.year, self.month - 1)

    def __str__(self) -> str:
        return self.key


def parse_period(value: str | None) -> BillingPeriod:
    raw = (value or "").strip()
    m = PERIOD_RE.match(raw)
    if not m:
        raise PeriodValidationError(
            f"Invalid period {value!r}; expected YYYY-MM (e.g. 2025-03).",
            period=value,
        )
    return BillingPeriod(int(m.group(1)), int(m.group(2)))


def period_for(moment: datetime) -> BillingPeriod:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return BillingPeriod(moment.year, moment.month)


def current_period() -> BillingPeriod:
    return period_for(utcnow())


def previous_period(moment: datetime | None = None) -> BillingPeriod:
    """Period the monthly payout job works on: the month before `moment`."""
    return period_for(moment or utcnow()).previous()


def as_utc(moment: datetime | None) -> datetime | None:
    """Stored timestamps are UTC; some drivers hand them back naive."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
