"""Admin merge endpoints: fold a duplicate into its canonical request."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.deps import require_admin
from backend.app.api.features import feature_to_dict
from backend.app.db import get_db
from backend.app.models.user import User
from backend.app.schemas.feature import SimilarFeatureResponse
from backend.app.schemas.merge import MergeCreate, MergeResponse
from backend.app.services import request_store
from backend.app.services.merge_engine import merge_requests
from backend.app.services.similarity import SearchMode, find_similar

router = APIRouter(prefix="/requests/{request_id}", tags=["merges"])


@router.post("/merge", response_model=MergeResponse)
async def merge_feature(
    request_id: int,
    data: MergeCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    result = await merge_requests(
        db,
        source_id=request_id,
        target_id=data.target_id,
        actor=admin,
        migrate_votes=data.merge_votes,
        migrate_comments=data.merge_comments,
    )
    author_name = await request_store.get_author_name(db, result.source.user_id)
    return {
        "target_id": result.target_id,
        "source": feature_to_dict(result.source, author_name),
        "votes_transferred": result.votes_transferred,
        "votes_discarded": result.votes_discarded,
        "comments_transferred": result.comments_transferred,
    }


@router.get("/merge-candidates", response_model=list[SimilarFeatureResponse])
async def merge_candidates(
    request_id: int,
    q: str = "",
    limit: int = Query(default=10, ge=1),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list:
    """Canonical targets for the merge dialog; never the request itself."""
    source = await request_store.get_request(db, request_id)
    return await find_similar(
        db,
        q,
        limit,
        mode=SearchMode.MERGE_TARGETS,
        exclude_id=request_id,
        project_id=source.project_id,
    )
