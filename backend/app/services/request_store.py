"""Request lookup, creation and row locking shared by the other services."""

import logging
from datetime import UTC, datetime

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.errors import NotFound
from backend.app.models.enums import RequestStatus
from backend.app.models.feature import FeatureRequest
from backend.app.models.user import User

logger = logging.getLogger(__name__)


def utcnow() -> str:
    return datetime.now(UTC).isoformat()


async def get_request(db: AsyncSession, request_id: int) -> FeatureRequest:
    """Load a request with fresh column values, or raise NotFound."""
    request = await db.get(FeatureRequest, request_id, populate_existing=True)
    if request is None:
        raise NotFound.request(request_id)
    return request


async def lock_request(db: AsyncSession, request_id: int) -> FeatureRequest:
    """Take a write lock on a request row for the rest of the transaction.

    The no-op UPDATE takes a row lock on server databases and the database
    write lock on SQLite; either way it is held until commit or rollback, so
    every read made after this call sees a stable row.
    """
    result = await db.execute(
        update(FeatureRequest)
        .where(FeatureRequest.id == request_id)
        .values(updated_at=FeatureRequest.updated_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound.request(request_id)
    return await get_request(db, request_id)


async def create_request(
    db: AsyncSession,
    *,
    author: User,
    title: str,
    category: str,
    priority: str,
    team: str = "Manufacturing",
    region: str = "Global",
    project_id: str | None = None,
    business_problem: str | None = None,
    problem_size: str | None = None,
    business_expectations: str | None = None,
    expected_impact: str | None = None,
) -> FeatureRequest:
    now = utcnow()
    request = FeatureRequest(
        title=title.strip(),
        category=category,
        priority=priority,
        team=team,
        region=region,
        status=RequestStatus.PENDING,
        business_problem=business_problem,
        problem_size=problem_size,
        business_expectations=business_expectations,
        expected_impact=expected_impact,
        upvote_count=0,
        like_count=0,
        user_id=author.id,
        project_id=project_id,
        created_at=now,
        updated_at=now,
    )
    db.add(request)
    await db.flush()
    logger.info("Request #%d created by %s", request.id, author.id)
    return request


async def list_requests(
    db: AsyncSession,
    *,
    status: str | None = None,
    project_id: str | None = None,
) -> list[tuple[FeatureRequest, str]]:
    """Requests with their author names, newest first.

    Archived requests are hidden unless explicitly filtered for.
    """
    query = select(FeatureRequest, User.name.label("author_name")).join(
        User, FeatureRequest.user_id == User.id
    )
    if status:
        query = query.where(FeatureRequest.status == status)
    else:
        query = query.where(FeatureRequest.status != RequestStatus.ARCHIVED)
    if project_id:
        query = query.where(FeatureRequest.project_id == project_id)

    query = query.order_by(desc(FeatureRequest.created_at), desc(FeatureRequest.id))
    result = await db.execute(query.execution_options(populate_existing=True))
    return [(request, author_name) for request, author_name in result.all()]


async def get_author_name(db: AsyncSession, user_id: str) -> str | None:
    result = await db.execute(select(User.name).where(User.id == user_id))
    return result.scalar_one_or_none()
