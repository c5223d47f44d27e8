"""Database models package.

Models:
    - Position: Org chart seat with a single optional parent and derived level
    - Department: Per-client department lookup used for labels and scoping
"""

from .department import Department
from .position import Position, new_position_id

__all__ = [
    "Department",
    "Position",
    "new_position_id",
]
