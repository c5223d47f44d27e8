"""Bulk import pipeline for batches of position rows.

A batch is validated as a unit and written all-or-nothing:

1. Schema validation per row (title, level, email, phone, department).
2. Referential validation against the combined id space of the client's
   persisted positions plus the batch-local keys.
3. One cycle pass over the combined graph (persisted edges, with edges of
   overwritten positions replaced by the batch's).
4. Commit only when no row failed; levels are derived from the final
   parent graph, never trusted from input.

Every problem is reported with its 1-based row number in one pass, so a
spreadsheet can be fixed in a single iteration. Row 0 is used for errors
about the batch as a whole.

Rows reference a parent either by ``parent_key`` (another row's ``key``) or
by ``parent_id`` (a persisted position). A row carrying ``id`` overwrites
that persisted position in place.
"""

import logging
from dataclasses import dataclass, field

from ..models.position import Position, new_position_id
from .errors import ValidationError
from .hierarchy_validator import recompute_levels
from .position_store import PositionStore, collect_field_errors, normalize_fields

logger = logging.getLogger(__name__)

POSITION_FIELDS = ("title", "employee_name", "email", "phone", "department", "department_id")
REFERENCE_FIELDS = ("key", "id", "parent_key", "parent_id")
IMPORT_FIELDS = set(POSITION_FIELDS) | set(REFERENCE_FIELDS) | {"level"}


@dataclass
class ImportRowError:
    row: int
    message: str

    def to_dict(self) -> dict:
        return {"row": self.row, "message": self.message}


@dataclass
class ImportResult:
    success: bool
    positions: list[Position] = field(default_factory=list)
    errors: list[ImportRowError] = field(default_factory=list)
    created: int = 0
    updated: int = 0

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "positions": [p.to_dict() for p in self.positions],
            "created": self.created,
            "updated": self.updated,
        }
        if self.errors:
            data["errors"] = [e.to_dict() for e in self.errors]
        return data


@dataclass
class _Row:
    """One validated candidate row and its place in the combined graph."""

    number: int
    fields: dict
    key: str | None = None
    existing_id: str | None = None
    parent_key: str | None = None
    parent_id: str | None = None
    node_id: str | None = None
    resolved_parent: str | None = None


def _clean_ref(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _coerce_level(value):
    """Turn a spreadsheet cell into an int level; leave bad values for validation."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            return value
    return value


class BulkImporter:
    """Validates and commits one batch of rows for one client.

    The caller must hold ``org_lock(client_id)`` and commit (or roll back)
    the session after ``run``.
    """

    def __init__(self, store: PositionStore, max_rows: int = 5000):
        self.store = store
        self.max_rows = max_rows

    def run(self, client_id: str, rows: list) -> ImportResult:
        if not client_id:
            raise ValidationError("client_id is required")
        if len(rows) > self.max_rows:
            return ImportResult(
                success=False,
                errors=[ImportRowError(0, f"Batch has {len(rows)} rows; the limit is {self.max_rows}")],
            )

        errors: list[ImportRowError] = []
        candidates = self._validate_schema(client_id, rows, errors)

        existing = {p.id: p for p in self.store.list(client_id=client_id)}
        self._validate_references(client_id, candidates, existing, errors)
        self._validate_cycles(candidates, existing, errors)

        if errors:
            errors.sort(key=lambda e: e.row)
            logger.warning(
                "Bulk import rejected for client %s: %d error(s) across %d row(s)",
                client_id, len(errors), len(rows),
            )
            return ImportResult(success=False, errors=errors)

        return self._commit(client_id, candidates, existing)

    # --- Step 1: schema ---

    def _validate_schema(self, client_id: str, rows: list, errors: list) -> list[_Row]:
        candidates = []
        for number, raw in enumerate(rows, start=1):
            if not isinstance(raw, dict):
                errors.append(ImportRowError(number, "Row must be an object of column values"))
                continue

            unknown = set(raw) - IMPORT_FIELDS
            if unknown:
                errors.append(ImportRowError(
                    number, f"Unknown column(s): {', '.join(sorted(unknown))}"
                ))

            fields = normalize_fields({k: raw[k] for k in POSITION_FIELDS if k in raw})
            fields.setdefault("title", None)
            level = _coerce_level(raw.get("level"))
            problems = collect_field_errors({**fields, "level": level})
            for message in problems:
                errors.append(ImportRowError(number, message))

            if fields.get("department_id"):
                try:
                    self.store.departments.resolve(client_id, fields["department_id"])
                except ValidationError as e:
                    errors.append(ImportRowError(number, e.message))

            row = _Row(
                number=number,
                fields=fields,
                key=_clean_ref(raw.get("key")),
                existing_id=_clean_ref(raw.get("id")),
                parent_key=_clean_ref(raw.get("parent_key")),
                parent_id=_clean_ref(raw.get("parent_id")),
            )
            if row.parent_key and row.parent_id:
                errors.append(ImportRowError(
                    number, "Give either parent_key or parent_id, not both"
                ))
            candidates.append(row)
        return candidates

    # --- Step 2: references ---

    def _validate_references(
        self, client_id: str, candidates: list[_Row], existing: dict, errors: list
    ) -> None:
        keys: dict[str, _Row] = {}
        overwritten: set[str] = set()

        for row in candidates:
            if row.key:
                if row.key in keys:
                    errors.append(ImportRowError(
                        row.number, f"Duplicate key '{row.key}' (first used on row {keys[row.key].number})"
                    ))
                elif row.key in existing:
                    errors.append(ImportRowError(
                        row.number, f"Key '{row.key}' collides with an existing position id"
                    ))
                else:
                    keys[row.key] = row

            if row.existing_id:
                if row.existing_id in overwritten:
                    errors.append(ImportRowError(
                        row.number, f"Position '{row.existing_id}' appears more than once"
                    ))
                elif row.existing_id not in existing:
                    errors.append(ImportRowError(
                        row.number, self._missing_position_message(row.existing_id)
                    ))
                overwritten.add(row.existing_id)
                row.node_id = row.existing_id
            else:
                row.node_id = new_position_id()

        for row in candidates:
            if row.parent_key:
                if row.parent_key == row.key:
                    errors.append(ImportRowError(row.number, "A position cannot report to itself"))
                elif row.parent_key not in keys:
                    errors.append(ImportRowError(
                        row.number, f"parent_key '{row.parent_key}' does not match any row key"
                    ))
                else:
                    row.resolved_parent = keys[row.parent_key].node_id
            elif row.parent_id:
                if row.parent_id == row.existing_id:
                    errors.append(ImportRowError(row.number, "A position cannot report to itself"))
                elif row.parent_id not in existing:
                    errors.append(ImportRowError(
                        row.number, self._missing_position_message(row.parent_id, parent=True)
                    ))
                else:
                    row.resolved_parent = row.parent_id

    def _missing_position_message(self, position_id: str, parent: bool = False) -> str:
        label = "Parent position" if parent else "Position"
        other = self.store.get(position_id)
        if other is not None:
            return f"{label} '{position_id}' belongs to a different client"
        return f"{label} '{position_id}' does not exist"

    # --- Step 3: cycles ---

    def _validate_cycles(self, candidates: list[_Row], existing: dict, errors: list) -> None:
        parent_of = {pid: p.parent_id for pid, p in existing.items()}
        for row in candidates:
            parent_of[row.node_id] = row.resolved_parent

        status = _classify_nodes(parent_of)
        for row in candidates:
            state = status.get(row.node_id)
            if state == "cycle":
                errors.append(ImportRowError(row.number, "Row is part of a reporting cycle"))
            elif state == "into_cycle":
                errors.append(ImportRowError(row.number, "Row reports into a reporting cycle"))

    # --- Step 4: commit ---

    def _commit(self, client_id: str, candidates: list[_Row], existing: dict) -> ImportResult:
        written = []
        created = updated = 0

        # Insert/overwrite every row as a root first so parents exist before edges
        for row in candidates:
            fields = {k: v for k, v in row.fields.items() if k in POSITION_FIELDS}
            if row.existing_id:
                position = self.store.update(row.existing_id, {**fields, "parent_id": None})
                updated += 1
            else:
                position = self.store.create({
                    **fields, "id": row.node_id, "client_id": client_id, "parent_id": None,
                })
                created += 1
            written.append((row, position))

        for row, position in written:
            position.parent_id = row.resolved_parent

        all_positions = self.store.list(client_id=client_id)
        changed = recompute_levels(all_positions)
        self.store.session.flush()

        logger.info(
            "Bulk import for client %s: %d created, %d updated, %d level(s) re-derived",
            client_id, created, updated, changed,
        )
        return ImportResult(
            success=True,
            positions=[position for _, position in written],
            created=created,
            updated=updated,
        )


def _classify_nodes(parent_of: dict[str, str | None]) -> dict[str, str]:
    """Label every node 'ok', 'cycle' (on a cycle) or 'into_cycle' in one pass.

    Each node has at most one parent, so following parents from any node
    either ends at a root or enters exactly one cycle.
    """
    status: dict[str, str] = {}
    for start in parent_of:
        if start in status:
            continue
        path: list[str] = []
        on_path: dict[str, int] = {}
        current = start
        outcome = "ok"
        while current is not None and current in parent_of:
            if current in status:
                outcome = "ok" if status[current] == "ok" else "into_cycle"
                break
            if current in on_path:
                for node in path[on_path[current]:]:
                    status[node] = "cycle"
                outcome = "into_cycle"
                break
            on_path[current] = len(path)
            path.append(current)
            current = parent_of[current]
        for node in path:
            status.setdefault(node, outcome)
    return status
