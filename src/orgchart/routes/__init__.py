"""Routes package for the org chart engine."""

from .departments import departments_bp
from .health import health_bp
from .positions import positions_bp

__all__ = ["departments_bp", "health_bp", "positions_bp"]
