# tutor_earnings/schemas/engagement.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tutor_earnings.services.engagement_service import CONTENT_TYPES


class ContentRef(BaseModel):
    content_id: UUID
    content_type: str = Field(examples=["PROGRAM", "MODULE"])

    @field_validator("content_type")
    @classmethod
    def _upper_content_type(cls, v: str) -> str:
        value = (v or "").strip().upper()
        if value not in CONTENT_TYPES:
            raise ValueError(f"content_type must be one of: {', '.join(CONTENT_TYPES)}")
        return value


class TrackWatchTimeRequest(ContentRef):
    minutes: int = Field(gt=0, le=24 * 60)


class CompletionRequest(ContentRef):
    pass


class ProgressRequest(ContentRef):
    # clamped to 0..100 by the service
    percent: int


class EngagementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    program_id: Optional[UUID] = None
    module_id: Optional[UUID] = None
    period: str

    watch_time_minutes: int
    completion_percent: int
    is_completed: bool

    completed_at: Optional[datetime] = None
    last_watched_at: Optional[datetime] = None
