"""Caller identity dependencies.

Authentication happens upstream; the gateway forwards the authenticated user
id in ``X-User-Id`` and the core trusts it once the user exists.
"""

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db import get_db
from backend.app.errors import Forbidden, Unauthorized
from backend.app.models.user import User


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not x_user_id:
        raise Unauthorized()
    result = await db.execute(select(User).where(User.id == x_user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise Unauthorized("Unknown user")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user
