"""Error taxonomy for the organization hierarchy services.

Every error carries a machine-readable ``code`` so the API layer can map it
to a status and callers can branch on the kind of rejection.
"""


class OrgChartError(Exception):
    """Base class for all hierarchy service errors."""

    code = "org_chart_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(OrgChartError):
    """A field is malformed or a patch is not allowed."""

    code = "validation_error"


class NotFoundError(OrgChartError):
    """A referenced position or department does not exist."""

    code = "not_found"


class HierarchyError(OrgChartError):
    """A parent assignment would break the reporting tree."""

    code = "hierarchy_error"


class SelfParentError(HierarchyError):
    code = "self_parent"


class ForeignClientError(HierarchyError):
    code = "foreign_client"


class CycleError(HierarchyError):
    code = "cycle"


class SubordinatesPresentError(OrgChartError):
    """Delete attempted without a strategy while subordinates exist."""

    code = "subordinates_present"

    def __init__(self, message: str, subordinate_count: int):
        super().__init__(message)
        self.subordinate_count = subordinate_count

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["subordinate_count"] = self.subordinate_count
        return data


class LockTimeoutError(OrgChartError):
    """The per-organization mutation lock could not be acquired in time."""

    code = "lock_timeout"
