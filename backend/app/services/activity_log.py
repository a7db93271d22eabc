"""Append-only activity history for requests.

Entries record status changes and merges. This module only inserts and reads;
there is no update or delete path.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.activity import ActivityEntry
from backend.app.models.enums import ActivityKind
from backend.app.models.user import User
from backend.app.services.request_store import get_request, utcnow


async def append_activity(
    db: AsyncSession,
    *,
    request_id: int,
    actor_id: str,
    kind: ActivityKind,
    old_value: str | None = None,
    new_value: str | None = None,
) -> ActivityEntry:
    """Insert one entry inside the caller's transaction (flushed, not committed)."""
    entry = ActivityEntry(
        request_id=request_id,
        actor_id=actor_id,
        action=ActivityKind(kind).value,
        old_value=old_value,
        new_value=new_value,
        created_at=utcnow(),
    )
    db.add(entry)
    await db.flush()
    return entry


async def list_activity(db: AsyncSession, request_id: int) -> list[tuple[ActivityEntry, str]]:
    """Entries for a request with actor names, oldest first."""
    await get_request(db, request_id)

    result = await db.execute(
        select(ActivityEntry, User.name.label("actor_name"))
        .join(User, ActivityEntry.actor_id == User.id)
        .where(ActivityEntry.request_id == request_id)
        .order_by(ActivityEntry.id)
    )
    return [(entry, actor_name) for entry, actor_name in result.all()]
