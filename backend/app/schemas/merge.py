from pydantic import BaseModel

from backend.app.schemas.feature import FeatureResponse


class MergeCreate(BaseModel):
    target_id: int
    merge_votes: bool = True
    merge_comments: bool = False


class MergeResponse(BaseModel):
    target_id: int
    source: FeatureResponse
    votes_transferred: int
    votes_discarded: int
    comments_transferred: int
