"""Feature request endpoints: CRUD, search, status workflow and activity."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models.feature import FeatureRequest
from backend.app.models.user import User
from backend.app.schemas.activity import ActivityResponse
from backend.app.schemas.feature import (
    FeatureCreate,
    FeatureResponse,
    FeatureStatusUpdate,
    SimilarFeatureResponse,
)
from backend.app.services import request_store
from backend.app.services.activity_log import list_activity
from backend.app.services.similarity import SearchMode, find_similar
from backend.app.services.workflow import change_status

router = APIRouter(prefix="/requests", tags=["requests"])


def feature_to_dict(fr: FeatureRequest, author_name: str | None) -> dict:
    return {
        "id": fr.id,
        "title": fr.title,
        "category": fr.category,
        "priority": fr.priority,
        "team": fr.team,
        "region": fr.region,
        "status": fr.status,
        "business_problem": fr.business_problem,
        "problem_size": fr.problem_size,
        "business_expectations": fr.business_expectations,
        "expected_impact": fr.expected_impact,
        "upvotes": fr.upvote_count,
        "likes": fr.like_count,
        "created_by": fr.user_id,
        "author_name": author_name,
        "project_id": fr.project_id,
        "merged_into_id": fr.merged_into_id,
        "created_at": fr.created_at,
        "updated_at": fr.updated_at,
    }


@router.get("", response_model=list[FeatureResponse])
async def list_features(
    status: str | None = None,
    project_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[dict]:
    rows = await request_store.list_requests(db, status=status, project_id=project_id)
    return [feature_to_dict(fr, author_name) for fr, author_name in rows]


@router.post("", response_model=FeatureResponse, status_code=201)
async def create_feature(
    data: FeatureCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    feature = await request_store.create_request(
        db,
        author=user,
        title=data.title,
        category=data.category,
        priority=data.priority,
        team=data.team,
        region=data.region,
        project_id=data.project_id,
        business_problem=data.business_problem,
        problem_size=data.problem_size,
        business_expectations=data.business_expectations,
        expected_impact=data.expected_impact,
    )
    return feature_to_dict(feature, user.name)


@router.get("/search", response_model=list[SimilarFeatureResponse])
async def search_features(
    q: str = "",
    limit: int = Query(default=10, ge=1),
    project_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list:
    """Title/author search box. Queries under 2 characters return []."""
    return await find_similar(db, q, limit, mode=SearchMode.SEARCH, project_id=project_id)


@router.get("/similar", response_model=list[SimilarFeatureResponse])
async def similar_features(
    title: str = "",
    limit: int = Query(default=5, ge=1),
    project_id: str | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list:
    """Pre-submission duplicate suggestions for the creation form."""
    return await find_similar(
        db, title, limit, mode=SearchMode.DUPLICATES, project_id=project_id
    )


@router.get("/{request_id}", response_model=FeatureResponse)
async def get_feature(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    feature = await request_store.get_request(db, request_id)
    author_name = await request_store.get_author_name(db, feature.user_id)
    return feature_to_dict(feature, author_name)


@router.patch("/{request_id}/status", response_model=FeatureResponse)
async def update_feature_status(
    request_id: int,
    data: FeatureStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    feature = await change_status(db, request_id, data.status, user)
    author_name = await request_store.get_author_name(db, feature.user_id)
    return feature_to_dict(feature, author_name)


@router.get("/{request_id}/activity", response_model=list[ActivityResponse])
async def get_feature_activity(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[dict]:
    rows = await list_activity(db, request_id)
    return [
        {
            "id": entry.id,
            "request_id": entry.request_id,
            "actor_id": entry.actor_id,
            "actor_name": actor_name,
            "action": entry.action,
            "old_value": entry.old_value,
            "new_value": entry.new_value,
            "created_at": entry.created_at,
        }
        for entry, actor_name in rows
    ]
