"""Department directory lookups for display labels and scoping."""

import logging

from ..database import db
from ..models.department import Department
from .errors import ValidationError

logger = logging.getLogger(__name__)


class DepartmentDirectory:
    """Read/write access to the per-client department lookup."""

    def __init__(self, session=None):
        self.session = session or db.session

    def get(self, department_id: str) -> Department | None:
        return self.session.get(Department, department_id)

    def list(self, client_id: str) -> list[Department]:
        return (
            self.session.query(Department)
            .filter(Department.client_id == client_id)
            .order_by(Department.name.asc())
            .all()
        )

    def resolve(self, client_id: str, department_id: str) -> Department:
        """Return the department, or raise if it is unknown to this client."""
        department = self.get(department_id)
        if department is None or department.client_id != client_id:
            raise ValidationError(
                f"Department '{department_id}' is not a valid department for this client"
            )
        return department

    def create(self, client_id: str, name: str, color: str | None = None) -> Department:
        if not name or not name.strip():
            raise ValidationError("Department name is required and cannot be empty.")
        name = name.strip()
        existing = (
            self.session.query(Department)
            .filter_by(client_id=client_id, name=name)
            .first()
        )
        if existing is not None:
            raise ValidationError(f"Department '{name}' already exists for this client")

        department = Department(client_id=client_id, name=name, color=color)
        self.session.add(department)
        self.session.flush()
        logger.info("Created department: %s (id=%s, client=%s)", name, department.id, client_id)
        return department
