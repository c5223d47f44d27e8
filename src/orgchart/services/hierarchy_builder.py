"""Hierarchy builder: flat position sets to forests and back.

Trees are built from immutable snapshots (``PositionNode``) rather than ORM
instances, so ``children`` is a read-only projection rebuilt on every read
and never a second source of truth next to ``parent_id``.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .org_stats import is_filled

logger = logging.getLogger(__name__)


@dataclass
class PositionNode:
    """Snapshot of one position plus its computed direct reports."""

    id: str
    client_id: str
    title: str
    level: int = 0
    parent_id: str | None = None
    employee_name: str | None = None
    email: str | None = None
    phone: str | None = None
    department: str | None = None
    department_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    children: list["PositionNode"] = field(default_factory=list)

    @classmethod
    def from_model(cls, position) -> "PositionNode":
        data = position.to_dict()
        return cls(**data)

    @property
    def is_vacant(self) -> bool:
        return not is_filled(self)

    def to_dict(self, include_children: bool = True) -> dict:
        data = {
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
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def build_tree(positions: Iterable[PositionNode]) -> list[PositionNode]:
    """Arrange a flat position set into a forest.

    A position whose parent is absent from ``positions`` (for example
    filtered out by a department scope) becomes a root, so a partial set
    still renders as a valid forest. Input order is kept among siblings.
    Existing ``children`` lists are reset.
    """
    nodes = list(positions)
    index: dict[str, PositionNode] = {}
    for node in nodes:
        node.children = []
        index[node.id] = node

    roots = []
    for node in nodes:
        parent = index.get(node.parent_id) if node.parent_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    reachable = _count_reachable(roots)
    if reachable != len(index):
        logger.warning(
            "build_tree: %d of %d positions are unreachable from any root (cyclic parent data)",
            len(index) - reachable, len(index),
        )
    return roots


def flatten_tree(tree: Iterable[PositionNode]) -> list[PositionNode]:
    """Pre-order traversal of a forest into a flat list, each node once."""
    flat = []
    seen = set()
    stack = list(reversed(list(tree)))
    while stack:
        node = stack.pop()
        if node.id in seen:
            continue
        seen.add(node.id)
        flat.append(node)
        stack.extend(reversed(node.children))
    return flat


def index_children(positions: Iterable) -> dict[str | None, list]:
    """Map parent id -> direct reports for any objects with ``id``/``parent_id``."""
    children: dict[str | None, list] = {}
    for position in positions:
        children.setdefault(position.parent_id, []).append(position)
    return children


def _count_reachable(roots: list[PositionNode]) -> int:
    return len(flatten_tree(roots))
