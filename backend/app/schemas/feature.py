"""Feature request schemas."""

from pydantic import BaseModel, Field

from backend.app.models.enums import Category, Priority, Region, RequestStatus, Team


class FeatureCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    category: Category
    priority: Priority
    team: Team = Team.MANUFACTURING
    region: Region = Region.GLOBAL
    project_id: str | None = None
    business_problem: str | None = None
    problem_size: str | None = None
    business_expectations: str | None = None
    expected_impact: str | None = None


class FeatureStatusUpdate(BaseModel):
    status: RequestStatus


class FeatureResponse(BaseModel):
    id: int
    title: str
    category: str
    priority: str
    team: str
    region: str
    status: str
    business_problem: str | None = None
    problem_size: str | None = None
    business_expectations: str | None = None
    expected_impact: str | None = None
    upvotes: int = 0
    likes: int = 0
    created_by: str
    author_name: str | None = None
    project_id: str | None = None
    merged_into_id: int | None = None
    created_at: str
    updated_at: str


class SimilarFeatureResponse(BaseModel):
    id: int
    title: str
    author_name: str | None = None
    status: str
    category: str
    score: int
