# tutor_earnings/api/v1/engagement.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from tutor_earnings.api.deps.auth import get_current_user
from tutor_earnings.api.deps.revenue import get_engagement_service
from tutor_earnings.core.errors import ContentNotFoundError, PeriodValidationError
from tutor_earnings.models.user import User
from tutor_earnings.schemas.engagement import (
    CompletionRequest,
    EngagementOut,
    ProgressRequest,
    TrackWatchTimeRequest,
)
from tutor_earnings.services.engagement_service import EngagementService

router = APIRouter(prefix="/engagement", tags=["engagement"])


def _not_found(e: ContentNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/track", response_model=EngagementOut)
async def track_watch_time(
    payload: TrackWatchTimeRequest,
    user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    """Add watch minutes to the caller's current-month record for the content."""
    try:
        row = await service.track_watch_time(user.id, payload.content_id, payload.content_type, payload.minutes)
    except ContentNotFoundError as e:
        raise _not_found(e)
    return EngagementOut.model_validate(row)


@router.post("/complete", response_model=EngagementOut)
async def mark_completed(
    payload: CompletionRequest,
    user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    try:
        row = await service.mark_completed(user.id, payload.content_id, payload.content_type)
    except ContentNotFoundError as e:
        raise _not_found(e)
    return EngagementOut.model_validate(row)


@router.put("/progress", response_model=EngagementOut)
async def update_progress(
    payload: ProgressRequest,
    user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    try:
        row = await service.update_completion_percent(
            user.id, payload.content_id, payload.content_type, payload.percent
        )
    except ContentNotFoundError as e:
        raise _not_found(e)
    return EngagementOut.model_validate(row)


@router.get("/me", response_model=list[EngagementOut])
async def my_engagement(
    period: Optional[str] = Query(None, description="YYYY-MM"),
    user: User = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    try:
        rows = await service.get_student_engagement(user.id, period)
    except PeriodValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())
    return [EngagementOut.model_validate(r) for r in rows]
