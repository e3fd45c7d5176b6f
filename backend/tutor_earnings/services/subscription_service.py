# tutor_earnings/services/subscription_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.core.errors import SubscriptionNotFoundError, SubscriptionStateError
from tutor_earnings.core.periods import as_utc, utcnow
from tutor_earnings.core.revenue_policy import CURRENCY, SUBSCRIPTION_DURATION_DAYS, SUBSCRIPTION_FEE
from tutor_earnings.models.subscription import (
    SUBSCRIPTION_CANCELLED,
    SUBSCRIPTION_COMPLETED,
    SUBSCRIPTION_EXPIRED,
    SUBSCRIPTION_OPEN_STATUSES,
    SUBSCRIPTION_PENDING,
    Subscription,
)
from tutor_earnings.services.subscription_access import SubscriptionContentAccess

logger = logging.getLogger(__name__)


class AccessGrantingPort(Protocol):
    async def grant_subscription_access(self, user_id: uuid.UUID, expires_at: Optional[datetime]) -> int: ...

    async def revoke_subscription_access(self, user_id: uuid.UUID) -> int: ...


@dataclass(frozen=True)
class SubscriptionFee:
    amount: Decimal
    currency: str
    duration_days: int


def get_subscription_fee() -> SubscriptionFee:
    return SubscriptionFee(amount=SUBSCRIPTION_FEE, currency=CURRENCY, duration_days=SUBSCRIPTION_DURATION_DAYS)


class SubscriptionService:
    """
    Subscription lifecycle, one row per payment cycle:

      PENDING -> COMPLETED -> EXPIRED
      PENDING | COMPLETED -> CANCELLED

    A user has at most one PENDING or COMPLETED row (partial unique index).
    Closed rows are history and still count toward revenue for the months
    their paid window covered.
    """

    def __init__(self, db: AsyncSession, access: AccessGrantingPort) -> None:
        self.db = db
        self.access = access

    async def _open_for_user(self, user_id: uuid.UUID) -> Optional[Subscription]:
        stmt = (
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .where(Subscription.status.in_(SUBSCRIPTION_OPEN_STATUSES))
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _latest_for_user(self, user_id: uuid.UUID) -> Optional[Subscription]:
        # the open cycle if any, else the most recent closed one
        is_open = case((Subscription.status.in_(SUBSCRIPTION_OPEN_STATUSES), 0), else_=1)
        stmt = (
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(is_open, Subscription.expires_at.desc(), Subscription.created_at.desc())
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _expire_if_lapsed(self, sub: Subscription) -> bool:
        """COMPLETED past expires_at -> EXPIRED with access revoked. Flushes only."""
        expires_at = as_utc(sub.expires_at)
        if sub.status != SUBSCRIPTION_COMPLETED or expires_at is None or expires_at >= utcnow():
            return False
        sub.status = SUBSCRIPTION_EXPIRED
        await self.access.revoke_subscription_access(sub.user_id)
        await self.db.flush()
        return True

    async def create_subscription(
        self,
        user_id: uuid.UUID,
        *,
        provider: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Subscription:
        """
        Open the PENDING payment record for the next cycle. An unpaid
        PENDING row is reused; an active subscription can't be re-created.
        """
        sub = await self._open_for_user(user_id)
        if sub is not None and await self._expire_if_lapsed(sub):
            sub = None
        if sub is not None and sub.status == SUBSCRIPTION_COMPLETED:
            raise SubscriptionStateError("Subscription is already active")

        if sub is None:
            sub = Subscription(user_id=user_id)
            self.db.add(sub)

        sub.amount = SUBSCRIPTION_FEE
        sub.currency = CURRENCY
        sub.status = SUBSCRIPTION_PENDING
        sub.provider = provider
        sub.transaction_id = transaction_id
        sub.starts_at = None
        sub.expires_at = utcnow() + timedelta(days=SUBSCRIPTION_DURATION_DAYS)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # race: another request opened a cycle first
            raise SubscriptionStateError("Subscription is being created by another request")

        await self.db.refresh(sub)
        return sub

    async def activate_subscription(
        self,
        user_id: uuid.UUID,
        *,
        transaction_id: str,
        provider: str,
    ) -> Subscription:
        """
        Payment confirmed: PENDING -> COMPLETED for 30 days from now, then
        grant access to subscription content. Access problems are logged and
        left for the next renewal; they never undo the activation.
        """
        sub = await self._open_for_user(user_id)
        if sub is None:
            raise SubscriptionNotFoundError("No pending subscription to activate")
        if sub.status == SUBSCRIPTION_COMPLETED:
            raise SubscriptionStateError("Subscription is already active")

        now = utcnow()
        sub.status = SUBSCRIPTION_COMPLETED
        sub.transaction_id = transaction_id
        sub.provider = provider
        sub.starts_at = now
        sub.expires_at = now + timedelta(days=SUBSCRIPTION_DURATION_DAYS)
        await self.db.commit()
        await self.db.refresh(sub)

        try:
            granted = await self.access.grant_subscription_access(user_id, sub.expires_at)
            await self.db.commit()
            logger.info("subscription %s activated; %s content grants", sub.id, granted)
        except Exception:
            sub_id = sub.id
            await self.db.rollback()
            logger.exception("subscription %s activated but granting content access failed", sub_id)
            await self.db.refresh(sub)

        return sub

    async def cancel_subscription(self, user_id: uuid.UUID) -> Subscription:
        """
        Close the open cycle and revoke subscription access, in one
        transaction. No refund: a paid window keeps counting as revenue.
        """
        sub = await self._open_for_user(user_id)
        if sub is None:
            latest = await self._latest_for_user(user_id)
            if latest is not None and latest.status == SUBSCRIPTION_CANCELLED:
                raise SubscriptionStateError("Subscription is already cancelled")
            raise SubscriptionNotFoundError("No active or pending subscription")

        sub_id = sub.id
        sub.status = SUBSCRIPTION_CANCELLED
        sub.cancelled_at = utcnow()
        try:
            revoked = await self.access.revoke_subscription_access(user_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception("cancelling subscription %s failed", sub_id)
            raise

        await self.db.refresh(sub)
        logger.info("subscription %s cancelled; %s content grants revoked", sub_id, revoked)
        return sub

    async def get_subscription_status(self, user_id: uuid.UUID) -> Optional[Subscription]:
        sub = await self._latest_for_user(user_id)
        if sub is None:
            return None
        # the daily job hasn't flipped it yet
        if await self._expire_if_lapsed(sub):
            await self.db.commit()
            await self.db.refresh(sub)
        return sub

    async def check_expired_subscriptions(self) -> int:
        """COMPLETED subscriptions past expires_at -> EXPIRED, access revoked."""
        now = utcnow()
        rows = (
            await self.db.execute(
                select(Subscription)
                .where(Subscription.status == SUBSCRIPTION_COMPLETED)
                .where(Subscription.expires_at < now)
            )
        ).scalars().all()

        for sub in rows:
            sub.status = SUBSCRIPTION_EXPIRED
            await self.access.revoke_subscription_access(sub.user_id)

        await self.db.commit()
        if rows:
            logger.info("expired %s subscriptions", len(rows))
        return len(rows)


def build_subscription_service(db: AsyncSession) -> SubscriptionService:
    return SubscriptionService(db, SubscriptionContentAccess(db))
