from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db import Base
from backend.app.models.enums import Role


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, unique=True, nullable=True, default=None)
    role: Mapped[str] = mapped_column(String, nullable=False, default=Role.EMPLOYEE.value)
    # ISO 8601 string, like every timestamp in the schema
    created_at: Mapped[str] = mapped_column(String, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
