"""Similarity search over request titles (and author names).

Modes:

* ``SEARCH``: the general search box, title and author, any status;
* ``DUPLICATES``: the "did you mean" prompt on the creation form, title only,
  longer minimum query;
* ``MERGE_TARGETS``: the admin merge dialog. It never offers the request
  being merged, duplicates or archived requests.

The query is always matched literally. SQL prefiltering escapes LIKE
wildcards and word-start matching goes through ``re.escape``, so input such
as ``a(b)`` or ``*.[`` is just text.
"""

import logging
import re
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy import desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import settings
from backend.app.models.enums import RequestStatus
from backend.app.models.feature import FeatureRequest
from backend.app.models.user import User

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^\W_]+")
_MIN_TOKEN_LENGTH = 3
_MAX_TOKENS = 8


class SearchMode(StrEnum):
    SEARCH = "search"
    DUPLICATES = "duplicates"
    MERGE_TARGETS = "merge_targets"


@dataclass
class SimilarRequest:
    id: int
    title: str
    author_name: str | None
    status: str
    category: str
    score: int


def min_query_length(mode: SearchMode) -> int:
    if mode == SearchMode.DUPLICATES:
        return settings.duplicate_min_length
    return settings.search_min_length


def clamp_limit(limit: int | None) -> int:
    if not limit or limit < 1:
        return min(10, settings.search_max_limit)
    return min(limit, settings.search_max_limit)


def query_tokens(text: str) -> list[str]:
    """Distinct lowercase words worth matching on their own."""
    seen: list[str] = []
    for token in _TOKEN_RE.findall(text.lower()):
        if len(token) >= _MIN_TOKEN_LENGTH and token not in seen:
            seen.append(token)
    return seen[:_MAX_TOKENS]


def _starts_word(term: str, text: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(term)}", text, re.IGNORECASE) is not None


def score_match(term: str, title: str, author: str | None, tokens: list[str]) -> int:
    """Relevance of one request for a lowercase ``term``; 0 means no match.

    Whole-phrase matches rank 10-100; requests matched only on individual
    words score 1-9 by the share of query words found in the title.
    """
    title_lower = title.lower()
    author_lower = (author or "").lower()

    if title_lower == term:
        return 100
    if title_lower.startswith(term):
        return 90
    if author_lower and author_lower == term:
        return 80
    if author_lower.startswith(term):
        return 70
    if _starts_word(term, title):
        return 50
    if author and _starts_word(term, author):
        return 40
    if term in title_lower:
        return 20
    if term in author_lower:
        return 10

    if not tokens:
        return 0
    matched = sum(1 for token in tokens if token in title_lower)
    if not matched:
        return 0
    return max(1, round(9 * matched / len(tokens)))


async def find_similar(
    db: AsyncSession,
    query: str | None,
    limit: int | None = 10,
    *,
    mode: SearchMode = SearchMode.SEARCH,
    exclude_id: int | None = None,
    project_id: str | None = None,
) -> list[SimilarRequest]:
    """Requests most similar to ``query``, best first, newest first on ties.

    Input shorter than the mode's minimum length returns ``[]``.
    """
    term = (query or "").strip().lower()
    if len(term) < min_query_length(mode):
        return []

    match_author = mode != SearchMode.DUPLICATES
    tokens = query_tokens(term)

    conditions = [FeatureRequest.title.icontains(term, autoescape=True)]
    if match_author:
        conditions.append(User.name.icontains(term, autoescape=True))
    conditions.extend(FeatureRequest.title.icontains(token, autoescape=True) for token in tokens)

    stmt = (
        select(FeatureRequest, User.name.label("author_name"))
        .outerjoin(User, FeatureRequest.user_id == User.id)
        .where(or_(*conditions))
        .order_by(desc(FeatureRequest.created_at), desc(FeatureRequest.id))
    )
    if mode in (SearchMode.DUPLICATES, SearchMode.MERGE_TARGETS):
        stmt = stmt.where(
            FeatureRequest.status.not_in([RequestStatus.DUPLICATE, RequestStatus.ARCHIVED]),
            FeatureRequest.merged_into_id.is_(None),
        )
    if exclude_id is not None:
        stmt = stmt.where(FeatureRequest.id != exclude_id)
    if project_id:
        stmt = stmt.where(FeatureRequest.project_id == project_id)

    result = await db.execute(stmt)

    matches: list[SimilarRequest] = []
    for request, author_name in result.all():
        score = score_match(term, request.title, author_name if match_author else None, tokens)
        if score:
            matches.append(
                SimilarRequest(
                    id=request.id,
                    title=request.title,
                    author_name=author_name,
                    status=request.status,
                    category=request.category,
                    score=score,
                )
            )

    # Stable sort keeps the newest-first SQL order among equal scores
    matches.sort(key=lambda m: m.score, reverse=True)
    logger.debug("find_similar(%r, mode=%s) -> %d match(es)", term, mode, len(matches))
    return matches[: clamp_limit(limit)]
