"""Vote ledger: per-voter, per-reaction toggles and derived counts.

The ``votes`` table is the source of truth. ``requests.upvote_count`` and
``requests.like_count`` are a read cache that every mutation rewrites inside
its own transaction; ``reconcile_vote_counts`` repairs any drift.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, desc, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.errors import FeatureBoardError, RequestMerged, StorageError, Unauthorized
from backend.app.models.enums import Reaction
from backend.app.models.feature import FeatureRequest, FeatureVote
from backend.app.models.user import User
from backend.app.services.request_store import get_request, lock_request, utcnow

logger = logging.getLogger(__name__)

_votes = FeatureVote.__table__


@dataclass
class VoteTally:
    request_id: int
    upvotes: int = 0
    likes: int = 0
    voter_reactions: list[str] = field(default_factory=list)


def _count_subquery(request_id_col, reaction: Reaction):
    return (
        select(func.count())
        .select_from(_votes)
        .where(_votes.c.request_id == request_id_col, _votes.c.reaction == reaction.value)
        .scalar_subquery()
    )


async def recount_votes(db: AsyncSession, request_id: int) -> None:
    """Rewrite a request's cached counters from the votes table."""
    await db.execute(
        update(FeatureRequest)
        .where(FeatureRequest.id == request_id)
        .values(
            upvote_count=_count_subquery(FeatureRequest.id, Reaction.UPVOTE),
            like_count=_count_subquery(FeatureRequest.id, Reaction.LIKE),
        )
        .execution_options(synchronize_session=False)
    )


async def get_tally(db: AsyncSession, request_id: int, voter_id: str | None = None) -> VoteTally:
    """Counts derived from the votes table plus the caller's own reactions."""
    await get_request(db, request_id)

    counts = await db.execute(
        select(_votes.c.reaction, func.count())
        .where(_votes.c.request_id == request_id)
        .group_by(_votes.c.reaction)
    )
    by_reaction = dict(counts.all())

    reactions: list[str] = []
    if voter_id is not None:
        held = await db.execute(
            select(_votes.c.reaction)
            .where(_votes.c.request_id == request_id, _votes.c.voter_id == voter_id)
            .order_by(_votes.c.reaction)
        )
        reactions = list(held.scalars().all())

    return VoteTally(
        request_id=request_id,
        upvotes=by_reaction.get(Reaction.UPVOTE.value, 0),
        likes=by_reaction.get(Reaction.LIKE.value, 0),
        voter_reactions=reactions,
    )


async def _apply_vote(
    db: AsyncSession,
    request_id: int,
    voter: User | None,
    reaction: Reaction,
    *,
    allow_insert: bool,
) -> VoteTally:
    if voter is None:
        raise Unauthorized()
    reaction = Reaction(reaction)

    key = (
        (_votes.c.request_id == request_id)
        & (_votes.c.voter_id == voter.id)
        & (_votes.c.reaction == reaction.value)
    )
    try:
        request = await lock_request(db, request_id)
        if allow_insert and request.merged_into_id is not None:
            raise RequestMerged(
                f"Request #{request_id} was merged into #{request.merged_into_id}; "
                "vote on that request instead"
            )

        removed = await db.execute(delete(_votes).where(key))
        if removed.rowcount == 0 and allow_insert:
            await db.execute(
                insert(_votes).values(
                    request_id=request_id,
                    voter_id=voter.id,
                    reaction=reaction.value,
                    created_at=utcnow(),
                )
            )
            action = "added"
        else:
            action = "removed" if removed.rowcount else "unchanged"

        await recount_votes(db, request_id)
        tally = await get_tally(db, request_id, voter.id)
        await db.commit()
    except FeatureBoardError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Vote %s on request #%d failed", reaction.value, request_id)
        raise StorageError(f"Could not record {reaction.value} on request #{request_id}") from exc

    logger.debug("Vote %s %s on request #%d by %s", reaction.value, action, request_id, voter.id)
    return tally


async def toggle_vote(
    db: AsyncSession, request_id: int, voter: User | None, reaction: Reaction
) -> VoteTally:
    """Delete the (request, voter, reaction) vote if held, insert it otherwise.

    Runs under a write lock on the request row, so a rapid double-click
    cannot produce two rows for one key. Retrying after a lost response may
    flip the vote back; callers reconcile against the returned tally.

    A merged duplicate accepts no new votes (``RequestMerged``); a toggle that
    waited on the merge lock sees the committed merge and is refused.
    """
    return await _apply_vote(db, request_id, voter, reaction, allow_insert=True)


async def retract_vote(
    db: AsyncSession, request_id: int, voter: User | None, reaction: Reaction
) -> VoteTally:
    """Remove the vote if held; a no-op otherwise."""
    return await _apply_vote(db, request_id, voter, reaction, allow_insert=False)


async def list_voters(db: AsyncSession, request_id: int, reaction: Reaction) -> list[User]:
    """Users holding ``reaction`` on the request, most recent first."""
    await get_request(db, request_id)

    result = await db.execute(
        select(User)
        .join(FeatureVote, FeatureVote.voter_id == User.id)
        .where(
            FeatureVote.request_id == request_id,
            FeatureVote.reaction == Reaction(reaction).value,
        )
        .order_by(desc(FeatureVote.created_at))
    )
    return list(result.scalars().all())


async def reconcile_vote_counts(db: AsyncSession) -> int:
    """Recompute every request's cached counters from the votes table.

    Drifted rows are rewritten with ``recount_votes``, so the counts are taken
    when the UPDATE runs rather than from the earlier scan. Returns the number
    of requests whose counters had drifted.
    """
    true_upvotes = _count_subquery(FeatureRequest.id, Reaction.UPVOTE)
    true_likes = _count_subquery(FeatureRequest.id, Reaction.LIKE)

    drifted = 0
    try:
        result = await db.execute(
            select(
                FeatureRequest.id,
                FeatureRequest.upvote_count,
                FeatureRequest.like_count,
                true_upvotes.label("true_upvotes"),
                true_likes.label("true_likes"),
            ).where(
                (FeatureRequest.upvote_count != true_upvotes)
                | (FeatureRequest.like_count != true_likes)
            )
        )
        for request_id, upvotes, likes, real_upvotes, real_likes in result.all():
            logger.warning(
                "Request #%d counters drifted: upvotes %d (counted %d), likes %d (counted %d)",
                request_id,
                upvotes,
                real_upvotes,
                likes,
                real_likes,
            )
            await recount_votes(db, request_id)
            drifted += 1
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Vote count reconciliation failed")
        raise StorageError("Vote count reconciliation failed") from exc

    logger.info("Reconciled vote counters: %d request(s) repaired", drifted)
    return drifted
