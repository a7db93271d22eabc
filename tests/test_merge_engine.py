"""Direct service-layer tests for the merge engine."""

from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.errors import (
    Forbidden,
    InvalidMergeSource,
    InvalidMergeTarget,
    MergeFailed,
    NotFound,
    RequestMerged,
)
from backend.app.models.activity import ActivityEntry
from backend.app.models.comment import Comment
from backend.app.models.enums import Reaction
from backend.app.models.feature import FeatureVote
from backend.app.services.merge_engine import merge_requests
from backend.app.services.request_store import get_request
from backend.app.services.vote_ledger import get_tally, toggle_vote
from tests.conftest import (
    create_admin,
    create_comment,
    create_request,
    create_user,
    create_vote,
)


async def _vote_keys(db: AsyncSession, request_id: int) -> set[tuple[str, str]]:
    result = await db.execute(
        select(FeatureVote.voter_id, FeatureVote.reaction).where(
            FeatureVote.request_id == request_id
        )
    )
    return set(result.all())


async def _activity(db: AsyncSession, request_id: int) -> list[tuple[str, str | None, str | None]]:
    result = await db.execute(
        select(ActivityEntry.action, ActivityEntry.old_value, ActivityEntry.new_value)
        .where(ActivityEntry.request_id == request_id)
        .order_by(ActivityEntry.id)
    )
    return [tuple(row) for row in result.all()]


@pytest.fixture
async def admin(db: AsyncSession):
    return await create_admin(db)


@pytest.fixture
async def scenario(db: AsyncSession, admin) -> dict:
    """A (3 upvotes, 1 like) and B (2 upvotes); voter u1 upvoted both."""
    users = [await create_user(db, name=f"u{i}") for i in range(1, 5)]
    a = await create_request(db, created_by=users[0].id, title="Dark mode")
    b = await create_request(db, created_by=users[1].id, title="Dark theme")

    for voter in users[:3]:
        await create_vote(db, request_id=a.id, voter_id=voter.id, reaction="upvote")
    await create_vote(db, request_id=a.id, voter_id=users[3].id, reaction="like")
    await create_vote(db, request_id=b.id, voter_id=users[0].id, reaction="upvote")
    await create_vote(db, request_id=b.id, voter_id=users[3].id, reaction="upvote")
    await db.commit()
    return {"a": a.id, "b": b.id, "users": [u.id for u in users]}


async def test_merge_scenario_counts(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]

    result = await merge_requests(
        db, source_id=a_id, target_id=b_id, actor=admin, migrate_votes=True
    )

    assert result.target_id == b_id
    assert result.votes_transferred == 3
    assert result.votes_discarded == 1

    b_tally = await get_tally(db, b_id)
    assert (b_tally.upvotes, b_tally.likes) == (4, 1)
    a_tally = await get_tally(db, a_id)
    assert (a_tally.upvotes, a_tally.likes) == (0, 0)

    a = await get_request(db, a_id)
    assert a.status == "duplicate"
    assert a.merged_into_id == b_id
    assert (a.upvote_count, a.like_count) == (0, 0)
    b = await get_request(db, b_id)
    assert (b.upvote_count, b.like_count) == (4, 1)
    assert b.merged_into_id is None


async def test_no_double_count_for_overlapping_voter(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    overlap = scenario["users"][0]

    await merge_requests(db, source_id=a_id, target_id=b_id, actor=admin)

    count = await db.scalar(
        select(func.count())
        .select_from(FeatureVote)
        .where(
            FeatureVote.request_id == b_id,
            FeatureVote.voter_id == overlap,
            FeatureVote.reaction == "upvote",
        )
    )
    assert count == 1
    assert await _vote_keys(db, a_id) == set()


async def test_merge_without_votes_still_clears_source(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    before = await _vote_keys(db, b_id)

    result = await merge_requests(
        db, source_id=a_id, target_id=b_id, actor=admin, migrate_votes=False
    )

    assert result.votes_transferred == 0
    assert await _vote_keys(db, a_id) == set()
    assert await _vote_keys(db, b_id) == before


async def test_merge_moves_comments_unchanged(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    author = scenario["users"][2]
    comment = await create_comment(
        db, request_id=a_id, author_id=author, body="@u1 same", mentions='["u1"]'
    )
    comment_id, created_at = comment.id, comment.created_at
    await db.commit()

    result = await merge_requests(
        db, source_id=a_id, target_id=b_id, actor=admin, migrate_comments=True
    )

    assert result.comments_transferred == 1
    moved = await db.get(Comment, comment_id, populate_existing=True)
    assert moved.request_id == b_id
    assert moved.author_id == author
    assert moved.body == "@u1 same"
    assert moved.mentions == '["u1"]'
    assert moved.created_at == created_at


async def test_merge_leaves_comments_when_not_requested(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    comment = await create_comment(db, request_id=a_id, author_id=scenario["users"][0])
    comment_id = comment.id
    await db.commit()

    await merge_requests(db, source_id=a_id, target_id=b_id, actor=admin)

    kept = await db.get(Comment, comment_id, populate_existing=True)
    assert kept.request_id == a_id


async def test_merge_logs_activity_on_both(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]

    await merge_requests(db, source_id=a_id, target_id=b_id, actor=admin)

    assert await _activity(db, a_id) == [("merge", "pending", f"Merged into #{b_id}")]
    assert await _activity(db, b_id) == [("merge_received", None, f"Merged from #{a_id}")]


async def test_merge_into_duplicate_is_rejected(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    author = scenario["users"][0]
    c = await create_request(db, created_by=author, title="Night mode")
    c_id = c.id
    await db.commit()
    await merge_requests(db, source_id=b_id, target_id=c_id, actor=admin)
    a_votes = await _vote_keys(db, a_id)

    with pytest.raises(InvalidMergeTarget):
        await merge_requests(db, source_id=a_id, target_id=b_id, actor=admin)

    a = await get_request(db, a_id)
    assert a.status == "pending"
    assert a.merged_into_id is None
    assert await _vote_keys(db, a_id) == a_votes
    assert await _activity(db, a_id) == []


async def test_merge_of_existing_duplicate_is_rejected(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    c = await create_request(db, created_by=scenario["users"][0], title="Night mode")
    c_id = c.id
    await db.commit()
    await merge_requests(db, source_id=a_id, target_id=b_id, actor=admin)

    with pytest.raises(InvalidMergeSource):
        await merge_requests(db, source_id=a_id, target_id=c_id, actor=admin)

    a = await get_request(db, a_id)
    assert a.merged_into_id == b_id


async def test_self_merge_is_rejected(db: AsyncSession, admin, scenario):
    with pytest.raises(InvalidMergeTarget):
        await merge_requests(db, source_id=scenario["a"], target_id=scenario["a"], actor=admin)


async def test_merge_unknown_target(db: AsyncSession, admin, scenario):
    a_id = scenario["a"]
    with pytest.raises(NotFound):
        await merge_requests(db, source_id=a_id, target_id=9999, actor=admin)

    a = await get_request(db, a_id)
    assert a.status == "pending"


async def test_merge_requires_admin(db: AsyncSession, scenario):
    employee = await create_user(db, name="employee")
    await db.commit()

    with pytest.raises(Forbidden):
        await merge_requests(db, source_id=scenario["a"], target_id=scenario["b"], actor=employee)


async def test_cross_project_merge_is_rejected(db: AsyncSession, admin):
    author = await create_user(db, name="author")
    a = await create_request(db, created_by=author.id, title="Dark mode", project_id="p1")
    b = await create_request(db, created_by=author.id, title="Dark mode", project_id="p2")
    a_id, b_id = a.id, b.id
    await db.commit()

    with pytest.raises(InvalidMergeTarget):
        await merge_requests(db, source_id=a_id, target_id=b_id, actor=admin)


async def test_merge_is_atomic_on_storage_failure(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    comment = await create_comment(db, request_id=a_id, author_id=scenario["users"][0])
    comment_id = comment.id
    await db.commit()
    a_votes = await _vote_keys(db, a_id)
    b_votes = await _vote_keys(db, b_id)

    with (
        patch(
            "backend.app.services.merge_engine._move_comments",
            side_effect=OperationalError("UPDATE comments", {}, Exception("database is locked")),
        ),
        pytest.raises(MergeFailed),
    ):
        await merge_requests(
            db,
            source_id=a_id,
            target_id=b_id,
            actor=admin,
            migrate_votes=True,
            migrate_comments=True,
        )

    a = await get_request(db, a_id)
    assert a.status == "pending"
    assert a.merged_into_id is None
    assert (a.upvote_count, a.like_count) == (3, 1)
    b = await get_request(db, b_id)
    assert (b.upvote_count, b.like_count) == (2, 0)
    assert await _vote_keys(db, a_id) == a_votes
    assert await _vote_keys(db, b_id) == b_votes
    kept = await db.get(Comment, comment_id, populate_existing=True)
    assert kept.request_id == a_id
    assert await _activity(db, a_id) == []
    assert await _activity(db, b_id) == []


async def test_archived_target_is_rejected(db: AsyncSession, admin, scenario):
    a_id = scenario["a"]
    archived = await create_request(
        db, created_by=scenario["users"][0], title="Dark mode (old)", status="archived"
    )
    archived_id = archived.id
    await db.commit()

    with pytest.raises(InvalidMergeTarget, match="archived"):
        await merge_requests(db, source_id=a_id, target_id=archived_id, actor=admin)

    a = await get_request(db, a_id)
    assert a.status == "pending"
    assert (a.upvote_count, a.like_count) == (3, 1)


async def test_votes_after_merge_are_refused(db: AsyncSession, admin, scenario):
    a_id, b_id = scenario["a"], scenario["b"]
    late = await create_user(db, name="late")
    await db.commit()
    await merge_requests(db, source_id=a_id, target_id=b_id, actor=admin)

    with pytest.raises(RequestMerged):
        await toggle_vote(db, a_id, late, Reaction.LIKE)

    assert await _vote_keys(db, a_id) == set()
