# tutor_earnings/core/errors.py
"""
Revenue distribution error taxonomy.

  RevenueError
    PeriodValidationError      malformed "YYYY-MM" key, nothing touched      -> 400
    PersistenceError           store unavailable / query failed, rolled back -> 500
    LedgerEntryError           one teacher's ledger insert failed (soft)
    DoubleDistributionError    period already DISTRIBUTED or lost a race     -> 409
    PeriodNotDistributedError  reconcile asked for an open period            -> 409

  SubscriptionNotFoundError, SubscriptionStateError and ContentNotFoundError
  belong to the subscription and engagement services (404 / 409 / 404).

LedgerEntryError never escapes the distributor: it is turned into a failed
PayoutOutcome so the rest of the batch still runs.
"""
from __future__ import annotations

from typing import Any


class RevenueError(Exception):
    code: str = "REVENUE_ERROR"

    def __init__(self, message: str, *, period: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.period = period

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.period is not None:
            detail["period"] = self.period
        return detail


class PeriodValidationError(RevenueError):
    code = "INVALID_PERIOD"


class PersistenceError(RevenueError):
    code = "PERSISTENCE_ERROR"


class LedgerEntryError(RevenueError):
    code = "LEDGER_ENTRY_FAILED"

    def __init__(self, message: str, *, period: str | None = None, teacher_id: Any = None) -> None:
        super().__init__(message, period=period)
        self.teacher_id = teacher_id


class DoubleDistributionError(RevenueError):
    code = "ALREADY_DISTRIBUTED"


class PeriodNotDistributedError(RevenueError):
    code = "PERIOD_NOT_DISTRIBUTED"


# ---------------------------------------------------------
# Subscriptions + engagement tracking
# ---------------------------------------------------------
class SubscriptionNotFoundError(LookupError):
    """No subscription (or no open one) for the user -> 404."""


class SubscriptionStateError(ValueError):
    """Transition not allowed from the current status -> 409."""


class ContentNotFoundError(LookupError):
    """Engagement reported for a program/module that doesn't exist -> 404."""
