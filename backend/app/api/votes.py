"""Vote endpoints.

``POST /vote`` is the toggle; ``DELETE /vote/{type}`` only ever retracts.
Both answer with the authoritative tally, which clients use to replace their
optimistic state.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.deps import get_current_user
from backend.app.db import get_db
from backend.app.models.enums import Reaction
from backend.app.models.user import User
from backend.app.schemas.vote import VoteCreate, VoterResponse, VoteTallyResponse
from backend.app.services.vote_ledger import (
    VoteTally,
    get_tally,
    list_voters,
    retract_vote,
    toggle_vote,
)

router = APIRouter(prefix="/requests/{request_id}", tags=["votes"])


def _tally_response(tally: VoteTally) -> dict:
    return {
        "request_id": tally.request_id,
        "upvotes": tally.upvotes,
        "likes": tally.likes,
        "user_votes": tally.voter_reactions,
    }


@router.post("/vote", response_model=VoteTallyResponse)
async def vote_feature(
    request_id: int,
    data: VoteCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    tally = await toggle_vote(db, request_id, user, data.type)
    return _tally_response(tally)


@router.delete("/vote/{reaction}", response_model=VoteTallyResponse)
async def unvote_feature(
    request_id: int,
    reaction: Reaction,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    tally = await retract_vote(db, request_id, user, reaction)
    return _tally_response(tally)


@router.get("/votes", response_model=VoteTallyResponse)
async def get_votes(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> dict:
    tally = await get_tally(db, request_id, user.id)
    return _tally_response(tally)


@router.get("/voters", response_model=list[VoterResponse])
async def get_voters(
    request_id: int,
    type: Reaction = Reaction.UPVOTE,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[dict]:
    voters = await list_voters(db, request_id, type)
    return [{"id": voter.id, "name": voter.name} for voter in voters]
