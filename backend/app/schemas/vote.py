from pydantic import BaseModel

from backend.app.models.enums import Reaction


class VoteCreate(BaseModel):
    type: Reaction


class VoteTallyResponse(BaseModel):
    request_id: int
    upvotes: int
    likes: int
    user_votes: list[Reaction]


class VoterResponse(BaseModel):
    id: str
    name: str
