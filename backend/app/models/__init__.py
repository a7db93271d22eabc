from backend.app.models.user import User
from backend.app.models.feature import FeatureRequest, FeatureVote
from backend.app.models.comment import Comment
from backend.app.models.activity import ActivityEntry

__all__ = [
    "User",
    "FeatureRequest",
    "FeatureVote",
    "Comment",
    "ActivityEntry",
]
