from pydantic import BaseModel


class ActivityResponse(BaseModel):
    id: int
    request_id: int
    actor_id: str
    actor_name: str | None = None
    action: str
    old_value: str | None = None
    new_value: str | None = None
    created_at: str
