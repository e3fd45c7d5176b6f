# tutor_earnings/services/subscription_access.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.core.periods import utcnow
from tutor_earnings.models.content_access_grant import ContentAccessGrant
from tutor_earnings.models.program import CourseModule, Program

ACCESS_SOURCE_SUBSCRIPTION = "SUBSCRIPTION"


class SubscriptionContentAccess:
    """
    Grants a subscriber access to every subscription-monetized program and
    module. Flushes only; the subscription service commits.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def grant_subscription_access(self, user_id: uuid.UUID, expires_at: Optional[datetime]) -> int:
        program_ids = (
            await self.db.execute(
                select(Program.id)
                .where(Program.monetization_type == "SUBSCRIPTION")
                .where(Program.is_published.is_(True))
            )
        ).scalars().all()
        module_ids = (
            await self.db.execute(
                select(CourseModule.id).where(CourseModule.monetization_type == "SUBSCRIPTION")
            )
        ).scalars().all()

        existing = (
            await self.db.execute(
                select(ContentAccessGrant)
                .where(ContentAccessGrant.user_id == user_id)
                .where(ContentAccessGrant.source == ACCESS_SOURCE_SUBSCRIPTION)
            )
        ).scalars().all()
        by_program = {g.program_id: g for g in existing if g.program_id is not None}
        by_module = {g.module_id: g for g in existing if g.module_id is not None}

        granted = 0
        for program_id in program_ids:
            granted += self._upsert_grant(by_program.get(program_id), user_id, expires_at, program_id=program_id)
        for module_id in module_ids:
            granted += self._upsert_grant(by_module.get(module_id), user_id, expires_at, module_id=module_id)

        await self.db.flush()
        return granted

    def _upsert_grant(
        self,
        grant: Optional[ContentAccessGrant],
        user_id: uuid.UUID,
        expires_at: Optional[datetime],
        *,
        program_id: Optional[uuid.UUID] = None,
        module_id: Optional[uuid.UUID] = None,
    ) -> int:
        if grant is None:
            self.db.add(
                ContentAccessGrant(
                    user_id=user_id,
                    program_id=program_id,
                    module_id=module_id,
                    source=ACCESS_SOURCE_SUBSCRIPTION,
                    expires_at=expires_at,
                )
            )
            return 1

        # renewal: extend and un-revoke
        grant.expires_at = expires_at
        grant.revoked_at = None
        return 1

    async def revoke_subscription_access(self, user_id: uuid.UUID) -> int:
        stmt = (
            update(ContentAccessGrant)
            .where(ContentAccessGrant.user_id == user_id)
            .where(ContentAccessGrant.source == ACCESS_SOURCE_SUBSCRIPTION)
            .where(ContentAccessGrant.revoked_at.is_(None))
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        res = await self.db.execute(stmt)
        return int(res.rowcount or 0)
