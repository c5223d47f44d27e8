"""Position model."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..database import db


def new_position_id() -> str:
    """Generate an opaque position identifier."""
    return str(uuid.uuid4())


class Position(db.Model):
    """
    Represents one seat in a client's reporting tree.

    A position optionally reports to one parent position of the same client.
    ``level`` is derived from the parent chain (0 for roots) and is kept
    correct by the hierarchy services, never set directly by callers.
    A position without an ``employee_name`` is vacant.
    """

    __tablename__ = "positions"
    __table_args__ = (
        Index("ix_positions_client_parent", "client_id", "parent_id"),
        Index("ix_positions_client_department", "client_id", "department_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_position_id
    )
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    employee_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    department: Mapped[str | None] = mapped_column(String(128), nullable=True)
    department_id: Mapped[str | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("positions.id"), nullable=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_vacant(self) -> bool:
        """Blank or whitespace-only names count as vacant, matching the stats."""
        return not (self.employee_name and self.employee_name.strip())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "title": self.title,
            "employee_name": self.employee_name,
            "email": self.email,
            "phone": self.phone,
            "department": self.department,
            "department_id": self.department_id,
            "parent_id": self.parent_id,
            "level": self.level,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Position id={self.id} title={self.title} level={self.level}>"
