"""Position store: CRUD and query access to Position records.

The store checks field formats and that a parent reference points at an
existing position of the same client (never the position itself). It does
NOT detect cycles and takes no locks: callers mutating a client's tree must
hold ``org_lock(client_id)`` and run cycle validation before writing.

Writes only flush; committing or rolling back is the caller's job, so a
multi-row operation stays one transaction.
"""

import logging
import re

from sqlalchemy import func, or_

from ..database import db
from ..models.position import Position, new_position_id
from .department_directory import DepartmentDirectory
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 128
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
PHONE_STRIP_PATTERN = re.compile(r"[\s\-()]")

OPTIONAL_TEXT_FIELDS = ("employee_name", "email", "phone", "department", "department_id")
WRITABLE_FIELDS = {"title", *OPTIONAL_TEXT_FIELDS, "parent_id", "level"}

# Sentinel for "filter not given" where None is a meaningful filter value
_UNSET = object()


def normalize_fields(data: dict) -> dict:
    """Strip text values and turn empty optional strings into None."""
    cleaned = dict(data)
    if isinstance(cleaned.get("title"), str):
        cleaned["title"] = cleaned["title"].strip()
    for field in OPTIONAL_TEXT_FIELDS + ("parent_id",):
        if field in cleaned and isinstance(cleaned[field], str):
            cleaned[field] = cleaned[field].strip() or None
    if cleaned.get("email"):
        cleaned["email"] = cleaned["email"].lower()
    return cleaned


def collect_field_errors(data: dict, partial: bool = False) -> list[str]:
    """Return every field-format problem in ``data`` (already normalized).

    With ``partial`` set, only the fields present are checked (patches).
    """
    errors = []

    if not partial or "title" in data:
        title = data.get("title")
        if not isinstance(title, str) or not title:
            errors.append("Position title is required")
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append(f"Position title exceeds {TITLE_MAX_LENGTH} characters")

    email = data.get("email")
    if email and not EMAIL_PATTERN.match(email):
        errors.append(f"Invalid email address: {email}")

    phone = data.get("phone")
    if phone and not PHONE_PATTERN.match(PHONE_STRIP_PATTERN.sub("", phone)):
        errors.append(f"Invalid phone number: {phone}")

    if "level" in data and data["level"] is not None:
        level = data["level"]
        if isinstance(level, bool) or not isinstance(level, int) or level < 0:
            errors.append("Level must be a non-negative integer")

    return errors


class PositionStore:
    """Owns the canonical set of Position records."""

    def __init__(
        self,
        session=None,
        departments: DepartmentDirectory | None = None,
        default_department_label: str = "Executive",
    ):
        self.session = session or db.session
        self.departments = departments or DepartmentDirectory(self.session)
        self.default_department_label = default_department_label

    # --- Reads ---

    def get(self, position_id: str) -> Position | None:
        if not position_id:
            return None
        return self.session.get(Position, position_id)

    def require(self, position_id: str) -> Position:
        position = self.get(position_id)
        if position is None:
            raise NotFoundError(f"Position '{position_id}' not found")
        return position

    def list(
        self,
        client_id: str | None = None,
        department_id: str | None = None,
        parent_id=_UNSET,
        search: str | None = None,
    ) -> list[Position]:
        """List positions matching every given predicate, ordered by level then title."""
        query = self.session.query(Position)
        if client_id is not None:
            query = query.filter(Position.client_id == client_id)
        if department_id is not None:
            query = query.filter(Position.department_id == department_id)
        if parent_id is not _UNSET:
            if parent_id is None:
                query = query.filter(Position.parent_id.is_(None))
            else:
                query = query.filter(Position.parent_id == parent_id)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Position.title).like(pattern),
                    func.lower(Position.employee_name).like(pattern),
                )
            )
        return query.order_by(Position.level.asc(), Position.title.asc(), Position.id.asc()).all()

    def count_subordinates(self, position_id: str) -> int:
        return (
            self.session.query(func.count(Position.id))
            .filter(Position.parent_id == position_id)
            .scalar()
        )

    # --- Writes ---

    def create(self, data: dict) -> Position:
        """Insert a new position. ``data`` must include ``client_id``."""
        client_id = data.get("client_id")
        if not client_id:
            raise ValidationError("client_id is required")

        unknown = set(data) - WRITABLE_FIELDS - {"id", "client_id"}
        if unknown:
            raise ValidationError(f"Unknown position fields: {', '.join(sorted(unknown))}")

        fields = normalize_fields(data)
        errors = collect_field_errors(fields)
        if errors:
            raise ValidationError("; ".join(errors))

        position_id = fields.get("id") or new_position_id()
        if self.get(position_id) is not None:
            raise ValidationError(f"Position '{position_id}' already exists")
        self._check_parent_reference(client_id, position_id, fields.get("parent_id"))
        self._apply_department(client_id, fields, creating=True)

        position = Position(
            id=position_id,
            client_id=client_id,
            title=fields["title"],
            employee_name=fields.get("employee_name"),
            email=fields.get("email"),
            phone=fields.get("phone"),
            department=fields.get("department"),
            department_id=fields.get("department_id"),
            parent_id=fields.get("parent_id"),
            level=fields.get("level") or 0,
        )
        self.session.add(position)
        self.session.flush()
        return position

    def update(self, position_id: str, patch: dict) -> Position:
        """Apply ``patch`` to an existing position."""
        position = self.require(position_id)

        unknown = set(patch) - WRITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be changed: {', '.join(sorted(unknown))}"
            )

        fields = normalize_fields(patch)
        errors = collect_field_errors(fields, partial=True)
        if errors:
            raise ValidationError("; ".join(errors))

        if "parent_id" in fields:
            self._check_parent_reference(position.client_id, position.id, fields["parent_id"])
        self._apply_department(position.client_id, fields, creating=False)

        for key, value in fields.items():
            setattr(position, key, value)
        self.session.flush()
        return position

    def delete(self, position_id: str) -> None:
        position = self.require(position_id)
        self.session.delete(position)
        self.session.flush()

    # --- Helpers ---

    def _check_parent_reference(self, client_id: str, position_id: str, parent_id: str | None) -> None:
        if parent_id is None:
            return
        if parent_id == position_id:
            raise ValidationError("A position cannot report to itself")
        parent = self.get(parent_id)
        if parent is None:
            raise ValidationError(f"Parent position '{parent_id}' does not exist")
        if parent.client_id != client_id:
            raise ValidationError(
                f"Parent position '{parent_id}' belongs to a different client"
            )

    def _apply_department(self, client_id: str, fields: dict, creating: bool) -> None:
        """Fill the department label from the directory when a reference is given."""
        if fields.get("department_id"):
            department = self.departments.resolve(client_id, fields["department_id"])
            fields["department"] = department.name
        elif creating and not fields.get("department"):
            fields["department"] = self.default_department_label
