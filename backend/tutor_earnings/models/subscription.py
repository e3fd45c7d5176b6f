# backend/tutor_earnings/models/subscription.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tutor_earnings.db.base import Base

SUBSCRIPTION_PENDING = "PENDING"
SUBSCRIPTION_COMPLETED = "COMPLETED"
SUBSCRIPTION_EXPIRED = "EXPIRED"
SUBSCRIPTION_CANCELLED = "CANCELLED"

# a user holds at most one of these at a time
SUBSCRIPTION_OPEN_STATUSES = (SUBSCRIPTION_PENDING, SUBSCRIPTION_COMPLETED)

# statuses a row can carry once it has been paid (starts_at is set on payment)
SUBSCRIPTION_PAID_STATUSES = (SUBSCRIPTION_COMPLETED, SUBSCRIPTION_EXPIRED, SUBSCRIPTION_CANCELLED)

_OPEN_WHERE = "status IN ('PENDING', 'COMPLETED')"


class Subscription(Base):
    """
    One monthly subscription payment cycle.

    A renewal opens a new row, so past cycles stay on record. Revenue for a
    period counts every paid row whose [starts_at, expires_at] window
    overlaps it, whatever happened to the row afterwards (expiry, cancel).
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_status_window", "status", "starts_at", "expires_at"),
        Index(
            "uq_subscriptions_user_open",
            "user_id",
            unique=True,
            postgresql_where=text(_OPEN_WHERE),
            sqlite_where=text(_OPEN_WHERE),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD", server_default="USD")

    # PENDING | COMPLETED | EXPIRED | CANCELLED
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SUBSCRIPTION_PENDING)

    # payment provider that confirmed it: STRIPE | PAYPAL | MANUAL
    provider: Mapped[str | None] = mapped_column(String(20), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
