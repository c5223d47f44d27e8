"""Department model."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..database import db


class Department(db.Model):
    """
    Represents a named department of a client organisation.

    Departments are a display and scoping lookup only: positions reference
    them to pick up a label and colour, and department-scoped org charts
    filter on them. They take no part in the reporting hierarchy.
    """

    __tablename__ = "departments"
    __table_args__ = (
        UniqueConstraint("client_id", "name", name="uq_departments_client_name"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    client_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "name": self.name,
            "color": self.color,
        }

    def __repr__(self) -> str:
        return f"<Department id={self.id} name={self.name}>"
