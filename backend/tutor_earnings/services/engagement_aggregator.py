# tutor_earnings/services/engagement_aggregator.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from tutor_earnings.core.periods import parse_period
from tutor_earnings.services.revenue_repository import RevenueRepository

logger = logging.getLogger(__name__)


@dataclass
class EngagementTotals:
    total_watch_time: int = 0
    total_completed: int = 0
    per_teacher_watch_time: dict[uuid.UUID, int] = field(default_factory=dict)
    per_teacher_completed: dict[uuid.UUID, int] = field(default_factory=dict)
    unresolved_records: int = 0


class EngagementAggregator:
    """
    Read-only: sums a period's engagement per owning teacher.

    Records whose content no longer resolves to a teacher are skipped (and
    logged), so `total_watch_time` is always the sum of the per-teacher
    buckets. Zero-minute records still count as completions.
    """

    def __init__(self, repository: RevenueRepository) -> None:
        self.repository = repository

    async def aggregate(self, period: str) -> EngagementTotals:
        key = parse_period(period).key
        rows = await self.repository.list_period_engagements(key)

        totals = EngagementTotals()
        for row in rows:
            if row.teacher_id is None:
                totals.unresolved_records += 1
                logger.warning(
                    "engagement %s in %s does not resolve to a teacher; skipped",
                    row.engagement_id,
                    key,
                )
                continue

            minutes = max(0, row.watch_time_minutes)
            totals.total_watch_time += minutes
            totals.per_teacher_watch_time[row.teacher_id] = (
                totals.per_teacher_watch_time.get(row.teacher_id, 0) + minutes
            )

            if row.is_completed:
                totals.total_completed += 1
                totals.per_teacher_completed[row.teacher_id] = (
                    totals.per_teacher_completed.get(row.teacher_id, 0) + 1
                )

        return totals
