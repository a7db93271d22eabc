"""Comment endpoints for a request's discussion thread.

Authors may edit their own comments; authors and admins may delete them.
"""

import json
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.errors import Forbidden, NotFound
from backend.app.models.comment import Comment
from backend.app.models.user import User
from backend.app.schemas.comment import CommentCreate, CommentResponse, CommentUpdate
from backend.app.services.request_store import get_request, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests/{request_id}/comments", tags=["comments"])


async def _get_comment(db: AsyncSession, request_id: int, comment_id: int) -> Comment:
    comment = await db.get(Comment, comment_id, populate_existing=True)
    if comment is None or comment.request_id != request_id:
        raise NotFound(f"Comment #{comment_id} not found")
    return comment


def _comment_to_dict(comment: Comment, author_name: str | None) -> dict:
    return {
        "id": comment.id,
        "request_id": comment.request_id,
        "author_id": comment.author_id,
        "author_name": author_name,
        "body": comment.body,
        "mentions": json.loads(comment.mentions) if comment.mentions else None,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }


@router.get("", response_model=list[CommentResponse])
async def get_comments(
    request_id: int,
    limit: int = Query(default=100, le=500),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[dict]:
    await get_request(db, request_id)

    query = (
        select(Comment, User.name.label("author_name"))
        .join(User, Comment.author_id == User.id)
        .where(Comment.request_id == request_id)
        .order_by(Comment.created_at, Comment.id)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return [_comment_to_dict(comment, author_name) for comment, author_name in result.all()]


@router.post("", response_model=CommentResponse, status_code=201)
async def add_comment(
    request_id: int,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    await get_request(db, request_id)

    now = utcnow()
    comment = Comment(
        request_id=request_id,
        author_id=user.id,
        body=data.body,
        mentions=json.dumps(data.mentions) if data.mentions else None,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    await db.flush()
    return _comment_to_dict(comment, user.name)


@router.patch("/{comment_id}", response_model=CommentResponse)
async def edit_comment(
    request_id: int,
    comment_id: int,
    data: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    comment = await _get_comment(db, request_id, comment_id)
    if comment.author_id != user.id:
        raise Forbidden("Only the author can edit this comment")

    comment.body = data.body.strip()
    comment.mentions = json.dumps(data.mentions) if data.mentions else None
    comment.updated_at = utcnow()
    await db.flush()
    return _comment_to_dict(comment, user.name)


@router.delete("/{comment_id}", status_code=204)
async def delete_comment(
    request_id: int,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    comment = await _get_comment(db, request_id, comment_id)
    if comment.author_id != user.id and not user.is_admin:
        raise Forbidden("Only the author or an admin can delete this comment")

    await db.delete(comment)
    await db.flush()
    logger.info("Comment #%d on request #%d deleted by %s", comment_id, request_id, user.id)
