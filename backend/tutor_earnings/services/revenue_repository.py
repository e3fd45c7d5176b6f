# tutor_earnings/services/revenue_repository.py
"""
Store access for the revenue distribution engine.

The engine only talks to `RevenueRepository`; `SqlRevenueRepository` is the
SQLAlchemy implementation bound to one AsyncSession (one transaction). Tests
swap in an in-memory implementation.

Writes flush but never commit: the caller owns the transaction boundary.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from tutor_earnings.core.errors import DoubleDistributionError, LedgerEntryError, PersistenceError
from tutor_earnings.models.program import CourseModule, Program
from tutor_earnings.models.student_engagement import StudentEngagement
from tutor_earnings.models.subscription import SUBSCRIPTION_PAID_STATUSES, Subscription
from tutor_earnings.models.subscription_revenue_pool import (
    POOL_CALCULATING,
    POOL_DISTRIBUTED,
    SubscriptionRevenuePool,
)
from tutor_earnings.models.teacher_earning import SOURCE_SUBSCRIPTION, TeacherEarning


@dataclass(frozen=True)
class EngagementRow:
    engagement_id: uuid.UUID
    teacher_id: Optional[uuid.UUID]  # None when the content no longer resolves
    watch_time_minutes: int
    is_completed: bool


class RevenueRepository(Protocol):
    async def sum_subscription_revenue(self, period_start: datetime, period_end: datetime) -> Decimal: ...

    async def list_period_engagements(self, period: str) -> list[EngagementRow]: ...

    async def get_pool(self, period: str, *, for_update: bool = False) -> Optional[SubscriptionRevenuePool]: ...

    async def get_latest_distributed_pool(self) -> Optional[SubscriptionRevenuePool]: ...

    async def save_pool(self, pool: SubscriptionRevenuePool) -> SubscriptionRevenuePool: ...

    async def mark_pool_distributed(self, pool: SubscriptionRevenuePool, distributed_at: datetime) -> bool: ...

    async def add_earning(self, entry: TeacherEarning) -> TeacherEarning: ...

    async def list_subscription_earnings(self, period: str) -> list[TeacherEarning]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@contextmanager
def _store_errors(action: str, period: str | None = None) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        raise PersistenceError(f"{action} failed: {e.__class__.__name__}", period=period) from e


class SqlRevenueRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def sum_subscription_revenue(self, period_start: datetime, period_end: datetime) -> Decimal:
        # every paid cycle whose window overlaps the period, even if it has
        # since expired or been cancelled; unpaid rows have no starts_at
        stmt = (
            select(func.coalesce(func.sum(Subscription.amount), 0))
            .where(Subscription.status.in_(SUBSCRIPTION_PAID_STATUSES))
            .where(Subscription.starts_at <= period_end)
            .where(Subscription.expires_at >= period_start)
        )
        with _store_errors("subscription revenue query"):
            total = (await self.db.execute(stmt)).scalar_one()
        return Decimal(str(total or 0))

    async def list_period_engagements(self, period: str) -> list[EngagementRow]:
        stmt = (
            select(
                StudentEngagement.id,
                StudentEngagement.watch_time_minutes,
                StudentEngagement.is_completed,
                Program.instructor_id,
                CourseModule.teacher_id,
            )
            .outerjoin(Program, Program.id == StudentEngagement.program_id)
            .outerjoin(CourseModule, CourseModule.id == StudentEngagement.module_id)
            .where(StudentEngagement.period == period)
            .order_by(StudentEngagement.created_at, StudentEngagement.id)
        )
        with _store_errors("engagement query", period):
            rows = (await self.db.execute(stmt)).all()

        return [
            EngagementRow(
                engagement_id=row[0],
                teacher_id=row[3] or row[4],
                watch_time_minutes=int(row[1] or 0),
                is_completed=bool(row[2]),
            )
            for row in rows
        ]

    async def get_pool(self, period: str, *, for_update: bool = False) -> Optional[SubscriptionRevenuePool]:
        stmt = select(SubscriptionRevenuePool).where(SubscriptionRevenuePool.period == period)
        if for_update:
            # serializes concurrent triggers for the same period (no-op on SQLite)
            stmt = stmt.with_for_update()
        with _store_errors("pool lookup", period):
            return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_latest_distributed_pool(self) -> Optional[SubscriptionRevenuePool]:
        stmt = (
            select(SubscriptionRevenuePool)
            .where(SubscriptionRevenuePool.status == POOL_DISTRIBUTED)
            .order_by(SubscriptionRevenuePool.distributed_at.desc())
            .limit(1)
        )
        with _store_errors("pool lookup"):
            return (await self.db.execute(stmt)).scalar_one_or_none()

    async def save_pool(self, pool: SubscriptionRevenuePool) -> SubscriptionRevenuePool:
        try:
            async with self.db.begin_nested():
                self.db.add(pool)
        except IntegrityError as e:
            # another trigger inserted this period between our read and write
            raise DoubleDistributionError(
                f"Revenue pool for {pool.period} is being calculated by another run",
                period=pool.period,
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"pool upsert failed: {e.__class__.__name__}", period=pool.period) from e
        return pool

    async def mark_pool_distributed(self, pool: SubscriptionRevenuePool, distributed_at: datetime) -> bool:
        """
        CALCULATING -> DISTRIBUTED as a compare-and-swap on (status, version).
        Returns False when another run already moved the row.
        """
        stmt = (
            update(SubscriptionRevenuePool)
            .where(SubscriptionRevenuePool.id == pool.id)
            .where(SubscriptionRevenuePool.status == POOL_CALCULATING)
            .where(SubscriptionRevenuePool.version == pool.version)
            .values(
                status=POOL_DISTRIBUTED,
                distributed_at=distributed_at,
                version=pool.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        with _store_errors("pool status update", pool.period):
            res = await self.db.execute(stmt)
        if res.rowcount != 1:
            return False

        # mirror the row without marking the instance dirty
        set_committed_value(pool, "status", POOL_DISTRIBUTED)
        set_committed_value(pool, "distributed_at", distributed_at)
        set_committed_value(pool, "version", pool.version + 1)
        return True

    async def add_earning(self, entry: TeacherEarning) -> TeacherEarning:
        try:
            async with self.db.begin_nested():
                self.db.add(entry)
        except IntegrityError as e:
            raise LedgerEntryError(
                "ledger entry already exists for this teacher and period",
                period=entry.period,
                teacher_id=entry.teacher_id,
            ) from e
        except SQLAlchemyError as e:
            raise LedgerEntryError(
                f"ledger insert failed: {e.__class__.__name__}",
                period=entry.period,
                teacher_id=entry.teacher_id,
            ) from e
        return entry

    async def list_subscription_earnings(self, period: str) -> list[TeacherEarning]:
        stmt = (
            select(TeacherEarning)
            .where(TeacherEarning.period == period)
            .where(TeacherEarning.revenue_source == SOURCE_SUBSCRIPTION)
            .order_by(TeacherEarning.created_at)
        )
        with _store_errors("ledger query", period):
            return list((await self.db.execute(stmt)).scalars().all())

    async def commit(self) -> None:
        with _store_errors("commit"):
            await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
