# backend/tutor_earnings/models/student_engagement.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, false, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tutor_earnings.db.base import Base


class StudentEngagement(Base):
    """
    Per (student, content, period) watch summary.

    Content is either a program or a module, never both: the owning teacher
    is programs.instructor_id or course_modules.teacher_id respectively.
    """

    __tablename__ = "student_engagements"
    __table_args__ = (
        CheckConstraint(
            "(program_id IS NULL) <> (module_id IS NULL)",
            name="one_content_ref",
        ),
        Index("ix_student_engagements_period", "period"),
        Index("ix_student_engagements_student_period", "student_id", "period"),
        # one row per (student, content, period)
        Index(
            "uq_student_engagements_program_period",
            "student_id",
            "program_id",
            "period",
            unique=True,
            postgresql_where=text("program_id IS NOT NULL"),
            sqlite_where=text("program_id IS NOT NULL"),
        ),
        Index(
            "uq_student_engagements_module_period",
            "student_id",
            "module_id",
            "period",
            unique=True,
            postgresql_where=text("module_id IS NOT NULL"),
            sqlite_where=text("module_id IS NOT NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    program_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("programs.id"),
        nullable=True,
        index=True,
    )
    module_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("course_modules.id"),
        nullable=True,
        index=True,
    )

    # YYYY-MM
    period: Mapped[str] = mapped_column(String(7), nullable=False)

    watch_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    completion_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_watched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
