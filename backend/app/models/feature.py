from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db import Base


class FeatureRequest(Base):
    __tablename__ = "requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    priority: Mapped[str] = mapped_column(String, nullable=False)
    team: Mapped[str] = mapped_column(String, nullable=False, default="Manufacturing")
    region: Mapped[str] = mapped_column(String, nullable=False, default="Global")
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    business_problem: Mapped[str | None] = mapped_column(String, nullable=True)
    problem_size: Mapped[str | None] = mapped_column(String, nullable=True)
    business_expectations: Mapped[str | None] = mapped_column(String, nullable=True)
    expected_impact: Mapped[str | None] = mapped_column(String, nullable=True)

    # Read-side cache of the votes table; rewritten in the same transaction as
    # every vote mutation and repairable by reconcile_vote_counts().
    upvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    project_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    # Set only by the merge engine, together with status = "duplicate"
    merged_into_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("requests.id"), nullable=True, default=None
    )
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("idx_requests_status", "status"),
        Index("idx_requests_created_at", "created_at"),
    )


class FeatureVote(Base):
    __tablename__ = "votes"

    # The composite key is the uniqueness constraint: one row per
    # (request, voter, reaction) at any time.
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.id", ondelete="CASCADE"), primary_key=True
    )
    voter_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), primary_key=True)
    reaction: Mapped[str] = mapped_column(String, primary_key=True)  # "upvote" or "like"
    created_at: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (Index("idx_votes_request_reaction", "request_id", "reaction"),)
