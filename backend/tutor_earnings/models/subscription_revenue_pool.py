# backend/tutor_earnings/models/subscription_revenue_pool.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tutor_earnings.db.base import Base

POOL_CALCULATING = "CALCULATING"
POOL_DISTRIBUTED = "DISTRIBUTED"


class SubscriptionRevenuePool(Base):
    """
    One row per billing period (YYYY-MM).

    Lifecycle:
      CALCULATING  (re)computed by the pool calculator, any number of times
      DISTRIBUTED  terminal; set once by the distributor, never recomputed

    `version` is bumped on every write so the status flip can be a
    compare-and-swap on (status, version).
    """

    __tablename__ = "subscription_revenue_pools"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    period: Mapped[str] = mapped_column(String(7), nullable=False, unique=True, index=True)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Money: teacher_pool = total_revenue - platform_fee
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"))
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"))
    teacher_pool: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"))

    # minutes of records that resolve to a teacher; orphaned content is left out
    total_watch_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_engagements: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # CALCULATING | DISTRIBUTED
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=POOL_CALCULATING)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    distributed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def is_distributed(self) -> bool:
        return self.status == POOL_DISTRIBUTED
