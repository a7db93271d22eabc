from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    body: str = Field(min_length=1)
    mentions: list[str] | None = None


class CommentResponse(BaseModel):
    id: int
    request_id: int
    author_id: str
    author_name: str | None = None
    body: str
    mentions: list[str] | None = None
    created_at: str
    updated_at: str


class CommentUpdate(BaseModel):
    body: str = Field(min_length=1)
    mentions: list[str] | None = None
