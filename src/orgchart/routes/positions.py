"""REST API endpoints for org chart positions."""

import logging

from flask import Blueprint, Response, current_app, jsonify, request

from ..services.errors import (
    HierarchyError,
    LockTimeoutError,
    NotFoundError,
    OrgChartError,
    SubordinatesPresentError,
    ValidationError,
)
from ..services.hierarchy_service import OrgHierarchyService

logger = logging.getLogger(__name__)

positions_bp = Blueprint("positions", __name__)

# Status per error kind; checked in order so subclasses win
ERROR_STATUS = (
    (NotFoundError, 404),
    (SubordinatesPresentError, 409),
    (LockTimeoutError, 409),
    (HierarchyError, 400),
    (ValidationError, 400),
)


def get_service() -> OrgHierarchyService:
    return current_app.extensions["org_hierarchy"]


@positions_bp.errorhandler(OrgChartError)
def handle_org_chart_error(error: OrgChartError):
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return jsonify(error.to_dict()), status
    logger.exception(f"Unmapped hierarchy error: {error.code}: {error.message}")
    return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# --- Client-scoped reads ---


@positions_bp.route("/api/clients/<client_id>/positions/tree", methods=["GET"])
def api_fetch_tree(client_id: str):
    """Org chart forest, optionally scoped with ?department_id=."""
    department_id = request.args.get("department_id") or None
    tree = get_service().fetch_tree(client_id, department_id=department_id)
    return jsonify({"positions": [node.to_dict() for node in tree]}), 200


@positions_bp.route("/api/clients/<client_id>/positions", methods=["GET"])
def api_list_positions(client_id: str):
    """Flat position list.

    Without filters the list is in org chart pre-order (parent picker order).
    With ?department_id= or ?search= it is ordered by level then title.
    """
    department_id = request.args.get("department_id") or None
    search = request.args.get("search") or None
    service = get_service()

    if department_id or search:
        positions = service.list_positions(client_id, department_id=department_id, search=search)
        items = [p.to_dict() for p in positions]
    else:
        items = [node.to_dict(include_children=False) for node in service.fetch_flat(client_id)]
    return jsonify({"positions": items, "count": len(items)}), 200


@positions_bp.route("/api/clients/<client_id>/positions/available-parents", methods=["GET"])
def api_available_parents(client_id: str):
    position_id = request.args.get("position_id") or None
    positions = get_service().get_available_parents(client_id, position_id)
    return jsonify({"positions": [p.to_dict() for p in positions]}), 200


@positions_bp.route("/api/clients/<client_id>/positions/stats", methods=["GET"])
def api_stats(client_id: str):
    return jsonify(get_service().get_stats(client_id).to_dict()), 200


@positions_bp.route("/api/clients/<client_id>/positions/validate", methods=["GET"])
def api_validate_hierarchy(client_id: str):
    """Dry-run a parent assignment.

    Returns:
        200: {valid: true} or {valid: false, error, code}
    """
    result = get_service().validate_hierarchy(
        client_id,
        position_id=request.args.get("position_id") or None,
        new_parent_id=request.args.get("new_parent_id") or None,
    )
    return jsonify(result), 200


# --- Bulk import / export ---


@positions_bp.route("/api/clients/<client_id>/positions/import", methods=["POST"])
def api_bulk_import(client_id: str):
    """Import a batch of rows all-or-nothing.

    Accepts JSON ``{"rows": [...]}`` or a ``text/csv`` body.

    Returns:
        200: Every row committed
        422: Nothing committed; body lists every row error
    """
    service = get_service()
    if request.mimetype == "text/csv":
        result = service.import_csv(client_id, request.get_data(as_text=True))
    else:
        rows = _json_body().get("rows")
        if not isinstance(rows, list):
            raise ValidationError("Request body must contain a 'rows' list")
        result = service.bulk_import(client_id, rows)

    return jsonify(result.to_dict()), 200 if result.success else 422


@positions_bp.route("/api/clients/<client_id>/positions/export", methods=["GET"])
def api_export(client_id: str):
    text = get_service().export_csv(client_id)
    return Response(
        text,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename=org-chart-{client_id}.csv"},
    )


# --- Single position ---


@positions_bp.route("/api/positions", methods=["POST"])
def api_create_position():
    """Create a position.

    Accepts JSON with client_id and title (required), plus employee_name,
    email, phone, department, department_id and parent_id. The level is
    derived from the parent.

    Returns:
        201: Created position
        400: Validation or hierarchy error
        404: Parent not found
    """
    position = get_service().create_position(_json_body())
    return jsonify(position.to_dict()), 201


@positions_bp.route("/api/positions/<position_id>", methods=["GET"])
def api_get_position(position_id: str):
    return jsonify(get_service().get_position(position_id).to_dict()), 200


@positions_bp.route("/api/positions/<position_id>", methods=["PATCH"])
def api_update_position(position_id: str):
    position = get_service().update_position(position_id, _json_body())
    return jsonify(position.to_dict()), 200


@positions_bp.route("/api/positions/<position_id>/subordinates", methods=["GET"])
def api_subordinates(position_id: str):
    positions = get_service().get_subordinates(position_id)
    return jsonify({"positions": [p.to_dict() for p in positions]}), 200


@positions_bp.route("/api/positions/<position_id>/move", methods=["POST"])
def api_move_position(position_id: str):
    """Re-parent a position; ``new_parent_id`` null makes it a root."""
    data = _json_body()
    if "new_parent_id" not in data:
        raise ValidationError("new_parent_id is required (null for a root position)")
    position = get_service().move_position(position_id, data["new_parent_id"])
    return jsonify(position.to_dict()), 200


@positions_bp.route("/api/positions/<position_id>/delete-plan", methods=["GET"])
def api_plan_delete(position_id: str):
    plan = get_service().plan_delete_position(
        position_id, strategy=request.args.get("strategy") or None
    )
    return jsonify(plan.to_dict()), 200


@positions_bp.route("/api/positions/<position_id>", methods=["DELETE"])
def api_delete_position(position_id: str):
    """Delete a position.

    Query:
        strategy: reassign-to-grandparent | cascade (required when the
            position has subordinates)

    Returns:
        200: {deleted_ids, reassigned_ids}
        409: Subordinates present and no strategy given
    """
    result = get_service().delete_position(
        position_id, strategy=request.args.get("strategy") or None
    )
    return jsonify(result.to_dict()), 200
