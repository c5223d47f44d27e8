"""Parent assignment validation and re-parenting with level recomputation.

Callers must hold ``org_lock(client_id)`` around ``move_position`` and any
validate-then-write sequence built from these functions.
"""

import logging
from typing import Iterable

from ..models.position import Position
from .errors import CycleError, ForeignClientError, NotFoundError, SelfParentError
from .hierarchy_builder import index_children
from .position_store import PositionStore

logger = logging.getLogger(__name__)


def ancestor_chain(parent_of: dict[str, str | None], start_id: str) -> list[str]:
    """Walk ``parent_of`` upward from ``start_id`` (inclusive).

    The walk is bounded by the number of known nodes, so corrupt cyclic data
    cannot loop forever; hitting the bound or revisiting a node raises
    CycleError.
    """
    chain = []
    seen = set()
    current = start_id
    limit = len(parent_of) + 1
    while current is not None:
        if current in seen or len(chain) > limit:
            raise CycleError(
                f"The reporting chain above '{start_id}' loops back on itself at '{current}'"
            )
        seen.add(current)
        chain.append(current)
        current = parent_of.get(current)
    return chain


def parent_map(positions: Iterable) -> dict[str, str | None]:
    return {p.id: p.parent_id for p in positions}


def validate_parent(
    store: PositionStore,
    client_id: str,
    position_id: str | None,
    candidate_parent_id: str | None,
) -> Position | None:
    """Check that ``candidate_parent_id`` may become the parent of ``position_id``.

    ``position_id`` is None for a position not yet in the tree, which cannot
    appear in any ancestor chain. Returns the parent position (None for a
    root assignment).

    Raises:
        SelfParentError, NotFoundError, ForeignClientError, CycleError
    """
    if candidate_parent_id is None:
        return None

    if candidate_parent_id == position_id:
        raise SelfParentError("A position cannot report to itself")

    parent = store.get(candidate_parent_id)
    if parent is None:
        raise NotFoundError(f"Parent position '{candidate_parent_id}' not found")
    if parent.client_id != client_id:
        raise ForeignClientError(
            f"Parent position '{candidate_parent_id}' belongs to a different client"
        )

    chain = ancestor_chain(parent_map(store.list(client_id=client_id)), candidate_parent_id)
    if position_id is not None and position_id in chain:
        raise CycleError(
            f"Position '{candidate_parent_id}' reports to '{position_id}'; "
            "moving there would create a cycle"
        )
    return parent


def subtree_ids(children: dict[str | None, list], root_id: str) -> list[str]:
    """Ids of ``root_id`` and all its descendants, pre-order."""
    ids = []
    seen = set()
    stack = [root_id]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        ids.append(current)
        stack.extend(reversed([c.id for c in children.get(current, [])]))
    return ids


def relevel_descendants(children: dict[str | None, list], root) -> int:
    """Set every descendant's level to its parent's level + 1.

    Under a consistent tree this shifts each descendant by the same delta as
    ``root``. Returns the number of descendants whose level changed.
    """
    changed = 0
    stack = [root]
    seen = {root.id}
    while stack:
        parent = stack.pop()
        for child in children.get(parent.id, []):
            if child.id in seen:
                continue
            seen.add(child.id)
            if child.level != parent.level + 1:
                child.level = parent.level + 1
                changed += 1
            stack.append(child)
    return changed


def recompute_levels(positions: list) -> int:
    """Derive every level from the parent chain. Returns the number changed."""
    by_id = {p.id: p for p in positions}
    children = index_children(positions)
    changed = 0
    for position in positions:
        if position.parent_id is None or position.parent_id not in by_id:
            if position.level != 0:
                position.level = 0
                changed += 1
            changed += relevel_descendants(children, position)
    return changed


def move_position(
    store: PositionStore, position_id: str, new_parent_id: str | None
) -> tuple[Position, int]:
    """Re-parent a position and correct the levels of its whole subtree.

    Only flushes; the caller commits (or rolls back) the whole change.

    Returns:
        (moved position, number of descendants whose level changed)
    """
    position = store.require(position_id)
    parent = validate_parent(store, position.client_id, position.id, new_parent_id)

    old_level = position.level
    new_level = parent.level + 1 if parent is not None else 0

    positions = store.list(client_id=position.client_id)
    store.update(position.id, {"parent_id": new_parent_id, "level": new_level})

    changed = relevel_descendants(index_children(positions), position)
    store.session.flush()

    logger.info(
        "Moved position %s under %s (level %d -> %d, %d descendants re-levelled)",
        position.id, new_parent_id or "root", old_level, new_level, changed,
    )
    return position, changed


def available_parents(store: PositionStore, client_id: str, position_id: str | None = None) -> list[Position]:
    """Positions of ``client_id`` that ``position_id`` may be moved under."""
    positions = store.list(client_id=client_id)
    if position_id is None:
        return positions
    excluded = set(subtree_ids(index_children(positions), position_id))
    return [p for p in positions if p.id not in excluded]
