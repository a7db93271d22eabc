"""Request status state machine.

``duplicate`` is never reachable through a status change: only a completed
merge persists it (see ``merge_engine``). ``archived`` and ``duplicate`` are
terminal.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.errors import (
    FeatureBoardError,
    Forbidden,
    InvalidTransition,
    StorageError,
    Unauthorized,
)
from backend.app.models.enums import ActivityKind, RequestStatus
from backend.app.models.feature import FeatureRequest
from backend.app.models.user import User
from backend.app.services.activity_log import append_activity
from backend.app.services.request_store import get_request, lock_request, utcnow

logger = logging.getLogger(__name__)

S = RequestStatus

TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    S.PENDING: frozenset({S.BACKLOG, S.IN_PROGRESS, S.REJECTED, S.ARCHIVED}),
    S.BACKLOG: frozenset({S.PENDING, S.IN_PROGRESS, S.REJECTED, S.ARCHIVED}),
    S.IN_PROGRESS: frozenset({S.BACKLOG, S.COMPLETED, S.REJECTED, S.ARCHIVED}),
    S.COMPLETED: frozenset({S.IN_PROGRESS, S.ARCHIVED}),
    S.REJECTED: frozenset({S.PENDING, S.BACKLOG, S.ARCHIVED}),
    S.ARCHIVED: frozenset(),
    S.DUPLICATE: frozenset(),
}


def can_transition(current: RequestStatus | str, new: RequestStatus | str) -> bool:
    return RequestStatus(new) in TRANSITIONS[RequestStatus(current)]


def check_transition(current: RequestStatus | str, new: RequestStatus | str) -> None:
    current, new = RequestStatus(current), RequestStatus(new)
    if new == S.DUPLICATE:
        raise InvalidTransition("Use a merge to mark a request as duplicate")
    if current == S.DUPLICATE:
        raise InvalidTransition("Request is a merged duplicate; its status is fixed")
    if current == new:
        raise InvalidTransition(f"Request is already {current.value}")
    if not can_transition(current, new):
        raise InvalidTransition(f"Cannot move a request from {current.value} to {new.value}")


async def change_status(
    db: AsyncSession,
    request_id: int,
    new_status: RequestStatus | str,
    actor: User | None,
) -> FeatureRequest:
    """Apply an admin status change and record it in the activity log.

    Failures are surfaced, never retried; the row is left as it was.
    """
    if actor is None:
        raise Unauthorized()
    if not actor.is_admin:
        raise Forbidden("Only admins can change request status")
    new_status = RequestStatus(new_status)

    try:
        request = await lock_request(db, request_id)
        old_status = request.status
        check_transition(old_status, new_status)

        await db.execute(
            update(FeatureRequest)
            .where(FeatureRequest.id == request_id)
            .values(status=new_status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await append_activity(
            db,
            request_id=request_id,
            actor_id=actor.id,
            kind=ActivityKind.STATUS_CHANGE,
            old_value=old_status,
            new_value=new_status.value,
        )
        await db.commit()
    except FeatureBoardError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Status change on request #%d failed", request_id)
        raise StorageError(f"Could not update status of request #{request_id}") from exc

    logger.info("Request #%d: %s -> %s by %s", request_id, old_status, new_status.value, actor.id)
    return await get_request(db, request_id)
