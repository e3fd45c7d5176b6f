# tutor_earnings/api/v1/subscriptions.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from tutor_earnings.api.deps.auth import get_current_user, require_admin
from tutor_earnings.api.deps.revenue import get_subscription_service
from tutor_earnings.core.errors import SubscriptionNotFoundError, SubscriptionStateError
from tutor_earnings.models.subscription import SUBSCRIPTION_COMPLETED
from tutor_earnings.models.user import User
from tutor_earnings.schemas.subscription import (
    SubscriptionActivate,
    SubscriptionCreate,
    SubscriptionFeeOut,
    SubscriptionOut,
    SubscriptionStatusOut,
)
from tutor_earnings.services.subscription_service import SubscriptionService, get_subscription_fee

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/fee", response_model=SubscriptionFeeOut)
def subscription_fee():
    return SubscriptionFeeOut.model_validate(get_subscription_fee())


@router.post("/me", response_model=SubscriptionOut, status_code=status.HTTP_201_CREATED)
async def create_my_subscription(
    payload: SubscriptionCreate,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Open a PENDING $6.00 / 30 day subscription awaiting payment."""
    try:
        sub = await service.create_subscription(
            user.id,
            provider=payload.provider,
            transaction_id=payload.transaction_id,
        )
    except SubscriptionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return SubscriptionOut.model_validate(sub)


@router.get("/me", response_model=SubscriptionStatusOut)
async def my_subscription_status(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.get_subscription_status(user.id)
    if sub is None:
        return SubscriptionStatusOut(has_subscription=False, is_active=False)
    return SubscriptionStatusOut(
        has_subscription=True,
        is_active=sub.status == SUBSCRIPTION_COMPLETED,
        subscription=SubscriptionOut.model_validate(sub),
    )


@router.post("/me/cancel", response_model=SubscriptionOut)
async def cancel_my_subscription(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel the open (pending or active) cycle; subscription content access ends now."""
    try:
        sub = await service.cancel_subscription(user.id)
    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SubscriptionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return SubscriptionOut.model_validate(sub)


@router.post("/{user_id}/activate", response_model=SubscriptionOut)
async def activate_subscription(
    user_id: UUID,
    payload: SubscriptionActivate,
    admin: User = Depends(require_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Confirm payment (manual or provider callback relayed by an admin) and
    grant access to all subscription content for 30 days.
    """
    try:
        sub = await service.activate_subscription(
            user_id,
            transaction_id=payload.transaction_id,
            provider=payload.provider,
        )
    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SubscriptionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return SubscriptionOut.model_validate(sub)
