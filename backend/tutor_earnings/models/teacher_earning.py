# backend/tutor_earnings/models/teacher_earning.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tutor_earnings.db.base import Base

SOURCE_SUBSCRIPTION = "SUBSCRIPTION"
SOURCE_COLLECTION = "COLLECTION"
SOURCE_LESSON = "LESSON"
SOURCE_LIVE_WORKSHOP = "LIVE_WORKSHOP"
REVENUE_SOURCES = (SOURCE_SUBSCRIPTION, SOURCE_COLLECTION, SOURCE_LESSON, SOURCE_LIVE_WORKSHOP)

EARNING_AVAILABLE = "AVAILABLE"
EARNING_PAID = "PAID"

UQ_SUBSCRIPTION_ENTRY = "uq_teacher_earnings_subscription_period"


class TeacherEarning(Base):
    """
    Canonical, append-only teacher earnings ledger.

    Stores:
      - amount (gross share credited to the teacher)
      - platform_fee_amount / net_amount (amount split by platform_fee_percent)
      - revenue_source (SUBSCRIPTION, COLLECTION, LESSON, LIVE_WORKSHOP)
      - revenue_pool_id for SUBSCRIPTION lines (which pool paid for it)

    NOTE:
      - Lines are never updated in place; corrections are new lines.
      - At most one SUBSCRIPTION line per teacher per period (partial unique
        index), which is what makes distribution retries conflict-safe.
    """

    __tablename__ = "teacher_earnings"
    __table_args__ = (
        Index("ix_teacher_earnings_teacher_period", "teacher_id", "period"),
        Index("ix_teacher_earnings_teacher_status", "teacher_id", "status"),
        Index(
            UQ_SUBSCRIPTION_ENTRY,
            "teacher_id",
            "period",
            "revenue_source",
            unique=True,
            postgresql_where=text("revenue_source = 'SUBSCRIPTION'"),
            sqlite_where=text("revenue_source = 'SUBSCRIPTION'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    teacher_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    period: Mapped[str] = mapped_column(String(7), nullable=False)
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    revenue_source: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # program/module id for direct sales; NULL for pooled subscription revenue
    source_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    watch_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    engaged_students: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    platform_fee_percent: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    platform_fee_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)

    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD", server_default="USD")

    # AVAILABLE | PAID
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=EARNING_AVAILABLE)

    revenue_pool_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("subscription_revenue_pools.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
