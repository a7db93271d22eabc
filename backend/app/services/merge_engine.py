"""Fold a duplicate request into its canonical target.

A merge is one transaction. Both request rows are write-locked (lowest id
first) before anything is read for validation. A vote toggled on the source
while the merge runs either commits before the lock and is migrated, or waits
for the merge to commit and is then refused with ``RequestMerged``. It is
never silently dropped.

Steps, all or nothing:

1. optionally copy source votes to the target, skipping any
   (voter, reaction) pair the target already holds, then delete every
   source vote;
2. optionally repoint source comments at the target;
3. recount both requests' cached counters;
4. mark the source ``duplicate`` with ``merged_into_id`` set;
5. append ``merge`` / ``merge_received`` activity entries.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import and_, delete, exists, func, insert, literal, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.errors import (
    FeatureBoardError,
    Forbidden,
    InvalidMergeSource,
    InvalidMergeTarget,
    MergeFailed,
    Unauthorized,
)
from backend.app.models.comment import Comment
from backend.app.models.enums import ActivityKind, RequestStatus
from backend.app.models.feature import FeatureRequest, FeatureVote
from backend.app.models.user import User
from backend.app.services.activity_log import append_activity
from backend.app.services.request_store import get_request, lock_request, utcnow
from backend.app.services.vote_ledger import recount_votes

logger = logging.getLogger(__name__)

_votes = FeatureVote.__table__
_comments = Comment.__table__


@dataclass
class MergeResult:
    target_id: int
    votes_transferred: int = 0
    votes_discarded: int = 0
    comments_transferred: int = 0
    source: FeatureRequest | None = None


def validate_merge(source: FeatureRequest, target: FeatureRequest) -> None:
    if source.merged_into_id is not None or source.status == RequestStatus.DUPLICATE:
        raise InvalidMergeSource(f"Request #{source.id} is already merged")
    if target.merged_into_id is not None or target.status == RequestStatus.DUPLICATE:
        raise InvalidMergeTarget(
            f"Request #{target.id} is itself a duplicate and cannot be a merge target"
        )
    if target.status == RequestStatus.ARCHIVED:
        raise InvalidMergeTarget(f"Request #{target.id} is archived and cannot be a merge target")
    if source.project_id and target.project_id and source.project_id != target.project_id:
        raise InvalidMergeTarget("Requests belong to different projects")


async def _migrate_votes(db: AsyncSession, source_id: int, target_id: int) -> tuple[int, int]:
    """Copy source votes the target does not already hold. Returns (copied, skipped)."""
    total = await db.scalar(
        select(func.count()).select_from(_votes).where(_votes.c.request_id == source_id)
    )

    held = _votes.alias("held")
    already_held = exists().where(
        and_(
            held.c.request_id == target_id,
            held.c.voter_id == _votes.c.voter_id,
            held.c.reaction == _votes.c.reaction,
        )
    )
    copied = await db.execute(
        insert(_votes).from_select(
            ["request_id", "voter_id", "reaction", "created_at"],
            select(
                literal(target_id),
                _votes.c.voter_id,
                _votes.c.reaction,
                _votes.c.created_at,
            ).where(_votes.c.request_id == source_id, ~already_held),
        )
    )
    return copied.rowcount, total - copied.rowcount


async def _move_comments(db: AsyncSession, source_id: int, target_id: int) -> int:
    moved = await db.execute(
        update(_comments).where(_comments.c.request_id == source_id).values(request_id=target_id)
    )
    return moved.rowcount


async def merge_requests(
    db: AsyncSession,
    *,
    source_id: int,
    target_id: int,
    actor: User | None,
    migrate_votes: bool = True,
    migrate_comments: bool = False,
) -> MergeResult:
    """Merge ``source_id`` into ``target_id`` atomically.

    Raises InvalidMergeTarget / InvalidMergeSource / NotFound / Forbidden
    before anything changes; any storage failure rolls the whole merge back
    and raises MergeFailed.
    """
    if actor is None:
        raise Unauthorized()
    if not actor.is_admin:
        raise Forbidden("Only admins can merge requests")
    if source_id == target_id:
        raise InvalidMergeTarget("Cannot merge a request into itself")

    result = MergeResult(target_id=target_id)
    try:
        locked = {rid: await lock_request(db, rid) for rid in sorted((source_id, target_id))}
        source, target = locked[source_id], locked[target_id]
        validate_merge(source, target)
        prior_status = source.status

        if migrate_votes:
            result.votes_transferred, result.votes_discarded = await _migrate_votes(
                db, source_id, target_id
            )
        await db.execute(delete(_votes).where(_votes.c.request_id == source_id))

        if migrate_comments:
            result.comments_transferred = await _move_comments(db, source_id, target_id)

        await recount_votes(db, target_id)
        await recount_votes(db, source_id)

        await db.execute(
            update(FeatureRequest)
            .where(FeatureRequest.id == source_id)
            .values(
                status=RequestStatus.DUPLICATE.value,
                merged_into_id=target_id,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        await append_activity(
            db,
            request_id=source_id,
            actor_id=actor.id,
            kind=ActivityKind.MERGE,
            old_value=prior_status,
            new_value=f"Merged into #{target_id}",
        )
        await append_activity(
            db,
            request_id=target_id,
            actor_id=actor.id,
            kind=ActivityKind.MERGE_RECEIVED,
            new_value=f"Merged from #{source_id}",
        )
        await db.commit()
    except FeatureBoardError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Merge of #%d into #%d failed; rolled back", source_id, target_id)
        raise MergeFailed() from exc

    logger.info(
        "Merged request #%d into #%d by %s (votes: %d moved, %d discarded; comments: %d)",
        source_id,
        target_id,
        actor.id,
        result.votes_transferred,
        result.votes_discarded,
        result.comments_transferred,
    )
    result.source = await get_request(db, source_id)
    return result
