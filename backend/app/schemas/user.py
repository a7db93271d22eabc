from pydantic import BaseModel


class UserResponse(BaseModel):
    id: str
    name: str
    email: str | None = None
    role: str
    created_at: str
