"""Organization hierarchy service.

Single entry point for the API and CLI layers. Reads take one snapshot
query and no lock; every write runs in one transaction, and writes that can
change ancestry or levels (create, move, delete, bulk import) hold the
client's ``org_lock`` for the whole validate-then-write sequence. Any error
rolls the session back, so a rejected write leaves the tree unchanged.

Nothing here retries: a retried move could land on a tree that changed
between attempts, so retries are the caller's decision.
"""

import logging
from contextlib import contextmanager

from ..config import get_hierarchy_config
from ..models.position import Position, new_position_id
from .bulk_import import BulkImporter, ImportResult
from .deletion_policy import DeletePlan, DeleteResult, execute_delete, plan_delete
from .department_directory import DepartmentDirectory
from .errors import ForeignClientError, OrgChartError, ValidationError
from .hierarchy_builder import PositionNode, build_tree, flatten_tree
from .hierarchy_validator import available_parents, move_position, validate_parent
from .org_lock import org_lock
from .org_stats import OrgStats, compute_stats
from .position_csv import export_csv, parse_csv
from .position_store import PositionStore

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("id", "client_id", "level", "created_at", "updated_at")


class OrgHierarchyService:
    """Builds, mutates, validates, imports and summarises client org charts."""

    def __init__(
        self,
        store: PositionStore | None = None,
        lock_timeout: float = 15.0,
        max_import_rows: int = 5000,
    ):
        self.store = store or PositionStore()
        self.lock_timeout = lock_timeout
        self.max_import_rows = max_import_rows

    @classmethod
    def from_config(cls, config: dict, session=None) -> "OrgHierarchyService":
        settings = get_hierarchy_config(config)
        store = PositionStore(
            session=session,
            default_department_label=settings["default_department_label"],
        )
        return cls(
            store=store,
            lock_timeout=settings["lock_timeout_seconds"],
            max_import_rows=settings["max_import_rows"],
        )

    @property
    def session(self):
        return self.store.session

    @property
    def departments(self) -> DepartmentDirectory:
        return self.store.departments

    # --- Transactions ---

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.session.commit()
        except OrgChartError as e:
            self.session.rollback()
            logger.warning(f"Write rejected ({e.code}): {e.message}")
            raise
        except Exception:
            self.session.rollback()
            raise

    @contextmanager
    def _mutation(self, client_id: str):
        with org_lock(client_id, timeout=self.lock_timeout):
            # Rows loaded before the lock may predate another writer's commit
            self.session.expire_all()
            with self._transaction():
                yield

    # --- Reads ---

    def get_position(self, position_id: str) -> Position:
        return self.store.require(position_id)

    def list_positions(
        self, client_id: str, department_id: str | None = None, search: str | None = None
    ) -> list[Position]:
        return self.store.list(client_id=client_id, department_id=department_id, search=search)

    def fetch_tree(self, client_id: str, department_id: str | None = None) -> list[PositionNode]:
        """Forest of the client's positions, optionally scoped to one department."""
        positions = self.store.list(client_id=client_id, department_id=department_id)
        return build_tree(PositionNode.from_model(p) for p in positions)

    def fetch_flat(self, client_id: str) -> list[PositionNode]:
        """All positions of the client in pre-order, children not populated."""
        flat = flatten_tree(self.fetch_tree(client_id))
        for node in flat:
            node.children = []
        return flat

    def get_subordinates(self, position_id: str) -> list[Position]:
        position = self.store.require(position_id)
        return self.store.list(client_id=position.client_id, parent_id=position.id)

    def get_available_parents(self, client_id: str, position_id: str | None = None) -> list[Position]:
        return available_parents(self.store, client_id, position_id)

    def get_stats(self, client_id: str) -> OrgStats:
        return compute_stats(self.store.list(client_id=client_id))

    def validate_hierarchy(
        self,
        client_id: str,
        position_id: str | None = None,
        new_parent_id: str | None = None,
    ) -> dict:
        """Dry-run a parent assignment. Never raises for a rejected assignment."""
        try:
            if position_id is not None:
                position = self.store.require(position_id)
                if position.client_id != client_id:
                    raise ForeignClientError(
                        f"Position '{position_id}' belongs to a different client"
                    )
            validate_parent(self.store, client_id, position_id, new_parent_id)
        except OrgChartError as e:
            return {"valid": False, "error": e.message, "code": e.code}
        return {"valid": True}

    def plan_delete_position(self, position_id: str, strategy: str | None = None) -> DeletePlan:
        return plan_delete(self.store, position_id, strategy)

    def export_csv(self, client_id: str) -> str:
        return export_csv(self.fetch_flat(client_id))

    # --- Writes ---

    def create_position(self, data: dict) -> Position:
        """Create a position; its level is derived from the chosen parent."""
        client_id = data.get("client_id")
        if not client_id:
            raise ValidationError("client_id is required")

        supplied_level = data.get("level")
        if supplied_level is not None and (
            isinstance(supplied_level, bool)
            or not isinstance(supplied_level, int)
            or supplied_level < 0
        ):
            raise ValidationError("Level must be a non-negative integer")

        parent_id = data.get("parent_id")
        if isinstance(parent_id, str):
            parent_id = parent_id.strip() or None

        with self._mutation(client_id):
            position_id = data.get("id") or new_position_id()
            parent = validate_parent(self.store, client_id, position_id, parent_id)
            level = parent.level + 1 if parent is not None else 0
            if supplied_level is not None and supplied_level != level:
                logger.debug(
                    "Ignoring supplied level %s for new position; derived level is %d",
                    supplied_level, level,
                )
            position = self.store.create({
                **data, "id": position_id, "parent_id": parent_id, "level": level,
            })

        logger.info(
            "Created position %s (client=%s, parent=%s, level=%d)",
            position.id, client_id, parent_id or "root", position.level,
        )
        return position

    def update_position(self, position_id: str, patch: dict) -> Position:
        """Change fields of a position. Ancestry changes go through ``move_position``."""
        position = self.store.require(position_id)

        blocked = [f for f in IMMUTABLE_FIELDS if f in patch]
        if blocked:
            raise ValidationError(f"Fields cannot be changed: {', '.join(blocked)}")

        patch = dict(patch)
        if "parent_id" in patch:
            new_parent = patch.pop("parent_id")
            if isinstance(new_parent, str):
                new_parent = new_parent.strip() or None
            if new_parent != position.parent_id:
                raise ValidationError("Use the move operation to change a position's parent")

        with self._transaction():
            position = self.store.update(position_id, patch)
        return position

    def move_position(self, position_id: str, new_parent_id: str | None) -> Position:
        client_id = self.store.require(position_id).client_id
        if isinstance(new_parent_id, str):
            new_parent_id = new_parent_id.strip() or None
        with self._mutation(client_id):
            moved, _ = move_position(self.store, position_id, new_parent_id)
        return moved

    def delete_position(self, position_id: str, strategy: str | None = None) -> DeleteResult:
        client_id = self.store.require(position_id).client_id
        with self._mutation(client_id):
            return execute_delete(self.store, position_id, strategy)

    def bulk_import(self, client_id: str, rows: list) -> ImportResult:
        """Validate and commit a batch all-or-nothing."""
        if not isinstance(rows, list):
            raise ValidationError("rows must be a list")
        importer = BulkImporter(self.store, max_rows=self.max_import_rows)
        with self._mutation(client_id):
            result = importer.run(client_id, rows)
            if not result.success:
                self.session.rollback()
        return result

    def import_csv(self, client_id: str, text: str) -> ImportResult:
        return self.bulk_import(client_id, parse_csv(text))
