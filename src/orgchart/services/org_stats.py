"""Statistics over a client's position set.

Counts are per record, so no hierarchy traversal is needed.
"""

from dataclasses import dataclass, field
from typing import Iterable

UNASSIGNED_LABEL = "Unassigned"


@dataclass
class GroupCount:
    total: int = 0
    filled: int = 0

    @property
    def vacant(self) -> int:
        return self.total - self.filled


@dataclass
class OrgStats:
    total_positions: int
    filled_positions: int
    vacant_positions: int
    by_department: list[dict] = field(default_factory=list)
    by_level: list[dict] = field(default_factory=list)

    @property
    def fill_rate(self) -> float:
        if not self.total_positions:
            return 0.0
        return round(self.filled_positions / self.total_positions, 4)

    def to_dict(self) -> dict:
        return {
            "total_positions": self.total_positions,
            "filled_positions": self.filled_positions,
            "vacant_positions": self.vacant_positions,
            "fill_rate": self.fill_rate,
            "by_department": self.by_department,
            "by_level": self.by_level,
        }


def is_filled(position) -> bool:
    """A position is filled when it has a non-empty employee name."""
    name = getattr(position, "employee_name", None)
    return bool(name and name.strip())


def compute_stats(positions: Iterable) -> OrgStats:
    """Fill counts plus per-department and per-level breakdowns.

    ``positions`` must already be scoped to one client. Department groups are
    keyed by ``department_id`` and labelled with the first label seen;
    positions without a reference are grouped by their label alone.
    """
    total = filled = 0
    departments: dict[tuple, GroupCount] = {}
    labels: dict[tuple, str] = {}
    levels: dict[int, GroupCount] = {}

    for position in positions:
        occupied = is_filled(position)
        total += 1
        filled += occupied

        key = (position.department_id, None if position.department_id else position.department)
        labels.setdefault(key, position.department or UNASSIGNED_LABEL)
        group = departments.setdefault(key, GroupCount())
        group.total += 1
        group.filled += occupied

        group = levels.setdefault(position.level, GroupCount())
        group.total += 1
        group.filled += occupied

    by_department = [
        {
            "department_id": key[0],
            "department": labels[key],
            "total": group.total,
            "filled": group.filled,
            "vacant": group.vacant,
        }
        for key, group in sorted(departments.items(), key=lambda item: labels[item[0]].lower())
    ]
    by_level = [
        {"level": level, "total": group.total, "filled": group.filled, "vacant": group.vacant}
        for level, group in sorted(levels.items())
    ]

    return OrgStats(
        total_positions=total,
        filled_positions=filled,
        vacant_positions=total - filled,
        by_department=by_department,
        by_level=by_level,
    )
