# tutor_earnings/services/engagement_service.py
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.core.errors import ContentNotFoundError
from tutor_earnings.core.periods import current_period, parse_period, utcnow
from tutor_earnings.models.program import CourseModule, Program
from tutor_earnings.models.student_engagement import StudentEngagement

CONTENT_PROGRAM = "PROGRAM"
CONTENT_MODULE = "MODULE"
CONTENT_TYPES = (CONTENT_PROGRAM, CONTENT_MODULE)


class EngagementService:
    """
    Writes the per-(student, content, month) engagement rows that the
    monthly revenue distribution reads. Every write lands in the current
    UTC period.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _ensure_content(self, content_id: uuid.UUID, content_type: str) -> None:
        model = Program if content_type == CONTENT_PROGRAM else CourseModule
        if await self.db.get(model, content_id) is None:
            raise ContentNotFoundError(f"{content_type.lower()} {content_id} not found")

    async def _find(
        self,
        student_id: uuid.UUID,
        content_id: uuid.UUID,
        ctype: str,
        period: str,
    ) -> Optional[StudentEngagement]:
        stmt = select(StudentEngagement).where(
            StudentEngagement.student_id == student_id,
            StudentEngagement.period == period,
        )
        if ctype == CONTENT_PROGRAM:
            stmt = stmt.where(StudentEngagement.program_id == content_id)
        else:
            stmt = stmt.where(StudentEngagement.module_id == content_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _get_or_create(
        self,
        student_id: uuid.UUID,
        content_id: uuid.UUID,
        content_type: str,
    ) -> StudentEngagement:
        ctype = (content_type or "").strip().upper()
        if ctype not in CONTENT_TYPES:
            raise ValueError(f"Invalid content type {content_type!r}. Allowed: {', '.join(CONTENT_TYPES)}")

        await self._ensure_content(content_id, ctype)
        period = current_period().key
        row = await self._find(student_id, content_id, ctype, period)
        if row is not None:
            return row

        row = StudentEngagement(
            student_id=student_id,
            program_id=content_id if ctype == CONTENT_PROGRAM else None,
            module_id=content_id if ctype == CONTENT_MODULE else None,
            period=period,
            watch_time_minutes=0,
            completion_percent=0,
            is_completed=False,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            # a concurrent request inserted the same (student, content, period)
            existing = await self._find(student_id, content_id, ctype, period)
            if existing is None:
                raise
            row = existing
        return row

    async def _save(self, row: StudentEngagement) -> StudentEngagement:
        await self.db.commit()
        await self.db.refresh(row)
        return row

    async def track_watch_time(
        self,
        student_id: uuid.UUID,
        content_id: uuid.UUID,
        content_type: str,
        minutes: int,
    ) -> StudentEngagement:
        if minutes <= 0:
            raise ValueError("minutes must be positive")

        row = await self._get_or_create(student_id, content_id, content_type)
        # increment in SQL so concurrent reports add up
        await self.db.execute(
            update(StudentEngagement)
            .where(StudentEngagement.id == row.id)
            .values(
                watch_time_minutes=StudentEngagement.watch_time_minutes + int(minutes),
                last_watched_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return await self._save(row)

    async def mark_completed(
        self,
        student_id: uuid.UUID,
        content_id: uuid.UUID,
        content_type: str,
    ) -> StudentEngagement:
        row = await self._get_or_create(student_id, content_id, content_type)
        now = utcnow()
        row.is_completed = True
        row.completion_percent = 100
        if row.completed_at is None:
            row.completed_at = now
        return await self._save(row)

    async def update_completion_percent(
        self,
        student_id: uuid.UUID,
        content_id: uuid.UUID,
        content_type: str,
        percent: int,
    ) -> StudentEngagement:
        row = await self._get_or_create(student_id, content_id, content_type)
        clamped = min(100, max(0, int(percent)))
        row.completion_percent = clamped
        row.is_completed = clamped >= 100
        row.completed_at = (row.completed_at or utcnow()) if row.is_completed else None
        return await self._save(row)

    async def get_student_engagement(
        self,
        student_id: uuid.UUID,
        period: Optional[str] = None,
    ) -> list[StudentEngagement]:
        stmt = select(StudentEngagement).where(StudentEngagement.student_id == student_id)
        if period:
            stmt = stmt.where(StudentEngagement.period == parse_period(period).key)
        stmt = stmt.order_by(StudentEngagement.period.desc(), StudentEngagement.last_watched_at.desc())
        return list((await self.db.execute(stmt)).scalars().all())
