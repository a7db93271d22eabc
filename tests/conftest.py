"""Shared fixtures and factory helpers.

Every test gets a fresh in-memory SQLite database. ``StaticPool`` keeps a
single connection alive so the ``db`` session used for setup and the
sessions the API opens per request see the same data.
"""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import backend.app.models  # noqa: F401 (registers tables on Base.metadata)
from backend.app.db import Base, get_db, install_sqlite_pragmas
from backend.app.main import app
from backend.app.models.comment import Comment
from backend.app.models.feature import FeatureRequest, FeatureVote
from backend.app.models.user import User
from backend.app.services.vote_ledger import recount_votes

_clock = datetime(2025, 1, 1, tzinfo=UTC)


def _tick() -> str:
    """Strictly increasing timestamps so ordering assertions are deterministic."""
    global _clock
    _clock += timedelta(seconds=1)
    return _clock.isoformat()


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_sqlite_pragmas(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncClient:
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth(user_id: str) -> dict[str, str]:
    """Headers the upstream gateway would forward for ``user_id``."""
    return {"X-User-Id": user_id}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


async def create_user(
    db: AsyncSession,
    *,
    name: str = "alice",
    role: str = "employee",
    email: str | None = None,
) -> User:
    user = User(
        id=str(uuid.uuid4()),
        name=name,
        email=email,
        role=role,
        created_at=_tick(),
    )
    db.add(user)
    await db.flush()
    return user


async def create_admin(db: AsyncSession, *, name: str = "admin") -> User:
    return await create_user(db, name=name, role="admin")


async def create_request(
    db: AsyncSession,
    *,
    created_by: str,
    title: str = "Dark mode",
    category: str = "new_feature",
    priority: str = "medium",
    status: str = "pending",
    project_id: str | None = None,
    merged_into_id: int | None = None,
) -> FeatureRequest:
    now = _tick()
    request = FeatureRequest(
        title=title,
        category=category,
        priority=priority,
        team="Manufacturing",
        region="Global",
        status=status,
        upvote_count=0,
        like_count=0,
        user_id=created_by,
        project_id=project_id,
        merged_into_id=merged_into_id,
        created_at=now,
        updated_at=now,
    )
    db.add(request)
    await db.flush()
    return request


async def create_vote(
    db: AsyncSession,
    *,
    request_id: int,
    voter_id: str,
    reaction: str = "upvote",
) -> FeatureVote:
    vote = FeatureVote(
        request_id=request_id,
        voter_id=voter_id,
        reaction=reaction,
        created_at=_tick(),
    )
    db.add(vote)
    await db.flush()
    await recount_votes(db, request_id)
    return vote


async def create_comment(
    db: AsyncSession,
    *,
    request_id: int,
    author_id: str,
    body: str = "Same here",
    mentions: str | None = None,
) -> Comment:
    now = _tick()
    comment = Comment(
        request_id=request_id,
        author_id=author_id,
        body=body,
        mentions=mentions,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    await db.flush()
    return comment
