"""Services package for the organization hierarchy engine."""

from .bulk_import import BulkImporter, ImportResult, ImportRowError
from .deletion_policy import DeletePlan, DeleteResult, DeleteStrategy, execute_delete, plan_delete
from .department_directory import DepartmentDirectory
from .errors import (
    CycleError,
    ForeignClientError,
    HierarchyError,
    LockTimeoutError,
    NotFoundError,
    OrgChartError,
    SelfParentError,
    SubordinatesPresentError,
    ValidationError,
)
from .hierarchy_builder import PositionNode, build_tree, flatten_tree
from .hierarchy_service import OrgHierarchyService
from .hierarchy_validator import move_position, validate_parent
from .org_lock import org_lock
from .org_stats import OrgStats, compute_stats
from .position_store import PositionStore

__all__ = [
    "BulkImporter",
    "ImportResult",
    "ImportRowError",
    "DeletePlan",
    "DeleteResult",
    "DeleteStrategy",
    "execute_delete",
    "plan_delete",
    "DepartmentDirectory",
    "CycleError",
    "ForeignClientError",
    "HierarchyError",
    "LockTimeoutError",
    "NotFoundError",
    "OrgChartError",
    "SelfParentError",
    "SubordinatesPresentError",
    "ValidationError",
    "PositionNode",
    "build_tree",
    "flatten_tree",
    "OrgHierarchyService",
    "move_position",
    "validate_parent",
    "org_lock",
    "OrgStats",
    "compute_stats",
    "PositionStore",
]
