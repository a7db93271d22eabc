from backend.app.schemas.activity import ActivityResponse
from backend.app.schemas.comment import CommentCreate, CommentResponse, CommentUpdate
from backend.app.schemas.feature import (
    FeatureCreate,
    FeatureResponse,
    FeatureStatusUpdate,
    SimilarFeatureResponse,
)
from backend.app.schemas.merge import MergeCreate, MergeResponse
from backend.app.schemas.user import UserResponse
from backend.app.schemas.vote import VoteCreate, VoterResponse, VoteTallyResponse

__all__ = [
    "UserResponse",
    "FeatureCreate",
    "FeatureStatusUpdate",
    "FeatureResponse",
    "SimilarFeatureResponse",
    "VoteCreate",
    "VoteTallyResponse",
    "VoterResponse",
    "MergeCreate",
    "MergeResponse",
    "CommentCreate",
    "CommentResponse",
    "CommentUpdate",
    "ActivityResponse",
]
