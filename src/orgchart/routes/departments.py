"""REST API endpoints for the per-client department directory."""

import logging

from flask import Blueprint, current_app, jsonify, request

from ..services.errors import ValidationError

logger = logging.getLogger(__name__)

departments_bp = Blueprint("departments", __name__)


@departments_bp.route("/api/clients/<client_id>/departments", methods=["GET"])
def api_list_departments(client_id: str):
    service = current_app.extensions["org_hierarchy"]
    departments = service.departments.list(client_id)
    return jsonify({"departments": [d.to_dict() for d in departments]}), 200


@departments_bp.route("/api/clients/<client_id>/departments", methods=["POST"])
def api_create_department(client_id: str):
    """Create a department.

    Accepts JSON with name (required) and color (optional).

    Returns:
        201: Created department
        400: Missing or duplicate name
    """
    data = request.get_json(silent=True) or {}
    service = current_app.extensions["org_hierarchy"]
    session = service.session

    try:
        department = service.departments.create(client_id, data.get("name"), data.get("color"))
        session.commit()
    except ValidationError as e:
        session.rollback()
        return jsonify(e.to_dict()), 400
    except Exception:
        session.rollback()
        logger.exception(f"Failed to create department for client {client_id}")
        return jsonify({"error": "Failed to create department", "code": "internal_error"}), 500

    return jsonify(department.to_dict()), 201
