# tutor_earnings/api/deps/auth.py
from __future__ import annotations

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_earnings.core.roles import UserRole
from tutor_earnings.core.security import bearer_scheme, decode_access_token
from tutor_earnings.db.session import get_db
from tutor_earnings.models.user import User


async def get_current_user(
    credentials=Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for protected endpoints.
    """
    user_id = decode_access_token(credentials.credentials)

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive")

    return user


def require_roles(*allowed_roles: UserRole | str):
    """
    Enforce user.role is in allowed_roles. (STUDENT/TEACHER/ADMIN)
    """
    allowed = {UserRole(r.upper()).value for r in allowed_roles}

    async def _checker(user: User = Depends(get_current_user)) -> User:
        role = (user.role or "").upper()
        if role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role: {role}. Allowed: {', '.join(sorted(allowed))}",
            )
        return user

    return _checker


require_admin = require_roles(UserRole.ADMIN)
require_teacher = require_roles(UserRole.TEACHER)
