"""Domain errors raised by the service layer.

Each carries the HTTP status the API layer renders it with; see the
handler registered in ``backend.app.main``.
"""


class FeatureBoardError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(FeatureBoardError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(FeatureBoardError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(FeatureBoardError):
    status_code = 404
    default_message = "Not found"

    @classmethod
    def request(cls, request_id: int) -> "NotFound":
        return cls(f"Request #{request_id} not found")


class InvalidMergeTarget(FeatureBoardError):
    status_code = 409
    default_message = "Invalid merge target"


class InvalidMergeSource(FeatureBoardError):
    status_code = 409
    default_message = "Invalid merge source"


class InvalidTransition(FeatureBoardError):
    status_code = 409
    default_message = "Status transition not allowed"


class StorageError(FeatureBoardError):
    status_code = 500
    default_message = "Storage error"


class MergeFailed(FeatureBoardError):
    status_code = 500
    default_message = "Merge failed; no changes were applied"


class RequestMerged(FeatureBoardError):
    status_code = 409
    default_message = "Request has been merged into another request"
