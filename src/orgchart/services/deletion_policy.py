"""Deletion policy: decide and carry out the fate of a position's subordinates.

Deleting a position with direct reports is refused unless the caller picks
a strategy explicitly; cascading is never the default.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .errors import SubordinatesPresentError, ValidationError
from .hierarchy_builder import index_children
from .hierarchy_validator import relevel_descendants, subtree_ids
from .position_store import PositionStore

logger = logging.getLogger(__name__)


class DeleteStrategy(str, Enum):
    BLOCK = "block"
    REASSIGN_TO_GRANDPARENT = "reassign-to-grandparent"
    CASCADE = "cascade"

    @classmethod
    def parse(cls, value: "str | DeleteStrategy | None") -> "DeleteStrategy | None":
        if value is None or value == "":
            return None
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ValidationError(f"Unknown delete strategy '{value}' (expected one of: {valid})")


@dataclass
class DeletePlan:
    """Outcome of planning a delete."""

    position_id: str
    allowed: bool
    subordinate_count: int
    strategy: DeleteStrategy

    def to_dict(self) -> dict:
        return {
            "position_id": self.position_id,
            "allowed": self.allowed,
            "subordinate_count": self.subordinate_count,
            "strategy": self.strategy.value,
        }


@dataclass
class DeleteResult:
    """Entities touched by an executed delete, for cache invalidation upstream."""

    deleted_ids: list[str]
    reassigned_ids: list[str]

    def to_dict(self) -> dict:
        return {"deleted_ids": self.deleted_ids, "reassigned_ids": self.reassigned_ids}


def plan_delete(
    store: PositionStore, position_id: str, strategy: "str | DeleteStrategy | None" = None
) -> DeletePlan:
    """Decide whether ``position_id`` may be deleted, and how.

    A leaf is always deletable. With subordinates, deletion needs an explicit
    non-block strategy; otherwise the plan is refused and carries the
    subordinate count so the caller can choose or abort.
    """
    position = store.require(position_id)
    chosen = DeleteStrategy.parse(strategy)
    count = store.count_subordinates(position.id)

    if count == 0:
        return DeletePlan(position.id, True, 0, chosen or DeleteStrategy.BLOCK)
    if chosen is None or chosen is DeleteStrategy.BLOCK:
        return DeletePlan(position.id, False, count, DeleteStrategy.BLOCK)
    return DeletePlan(position.id, True, count, chosen)


def execute_delete(
    store: PositionStore, position_id: str, strategy: "str | DeleteStrategy | None" = None
) -> DeleteResult:
    """Delete a position according to its plan. Only flushes; the caller commits.

    Raises:
        SubordinatesPresentError: subordinates exist and no strategy was chosen
    """
    plan = plan_delete(store, position_id, strategy)
    if not plan.allowed:
        raise SubordinatesPresentError(
            f"Position '{position_id}' has {plan.subordinate_count} subordinate(s); "
            "choose 'reassign-to-grandparent' or 'cascade' to delete it",
            plan.subordinate_count,
        )

    position = store.require(position_id)
    positions = store.list(client_id=position.client_id)

    if plan.subordinate_count == 0:
        store.delete(position.id)
        logger.info("Deleted leaf position %s (client=%s)", position.id, position.client_id)
        return DeleteResult(deleted_ids=[position.id], reassigned_ids=[])

    if plan.strategy is DeleteStrategy.REASSIGN_TO_GRANDPARENT:
        return _reassign_and_delete(store, position, positions)
    return _cascade_delete(store, position, positions)


def _reassign_and_delete(store: PositionStore, position, positions) -> DeleteResult:
    children = index_children(positions)
    direct_reports = list(children.get(position.id, []))
    new_level = position.level

    for child in direct_reports:
        child.parent_id = position.parent_id
        child.level = new_level

    # Re-index with the reassigned edges, then pull each moved subtree up
    children = index_children(p for p in positions if p.id != position.id)
    for child in direct_reports:
        relevel_descendants(children, child)

    # Flush reassignment before the delete so no row still references the parent
    store.session.flush()
    store.delete(position.id)

    reassigned = [c.id for c in direct_reports]
    logger.info(
        "Deleted position %s and reassigned %d direct report(s) to %s",
        position.id, len(reassigned), position.parent_id or "root",
    )
    return DeleteResult(deleted_ids=[position.id], reassigned_ids=reassigned)


def _cascade_delete(store: PositionStore, position, positions) -> DeleteResult:
    by_id = {p.id: p for p in positions}
    children = index_children(positions)
    doomed_ids = subtree_ids(children, position.id)

    depth = {position.id: 0}
    for current in doomed_ids:
        for child in children.get(current, []):
            depth.setdefault(child.id, depth[current] + 1)

    # Deepest first so no deleted row is still referenced by a remaining child
    for d in sorted(set(depth.values()), reverse=True):
        for doomed_id in doomed_ids:
            if depth[doomed_id] == d:
                store.session.delete(by_id[doomed_id])
        store.session.flush()

    deleted = list(doomed_ids)
    logger.info(
        "Cascade-deleted position %s with %d descendant(s)", position.id, len(deleted) - 1
    )
    return DeleteResult(deleted_ids=deleted, reassigned_ids=[])
