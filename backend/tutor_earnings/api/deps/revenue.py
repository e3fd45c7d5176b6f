# tutor_earnings/api/deps/revenue.py
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.db.session import get_db
from tutor_earnings.services.engagement_service import EngagementService
from tutor_earnings.services.revenue_service import SubscriptionRevenueService, build_revenue_service
from tutor_earnings.services.subscription_service import SubscriptionService, build_subscription_service


def get_revenue_service(db: AsyncSession = Depends(get_db)) -> SubscriptionRevenueService:
    return build_revenue_service(db)


def get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    return build_subscription_service(db)


def get_engagement_service(db: AsyncSession = Depends(get_db)) -> EngagementService:
    return EngagementService(db)
