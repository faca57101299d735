# Overview: Flask API routes for the gateway tables; parses input and returns JSON rows.

"""
Gateway Table Routes

SECURITY:
- Every call needs the deployment "apikey" header and an operator session.
- Writes to stores, service_categories, kanban_columns and profiles need
  role ADMIN or MANAGER. The console does not pre-check this; it shows
  whatever the gateway answers.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_api_key, require_auth
from ..services import table_service
from ..services.table_service import RowNotFoundError, TableNotFoundError
from ..validation import ConflictError, ValidationError


rest_bp = Blueprint("rest", __name__, url_prefix="/rest/v1")

WRITE_ROLES = ("ADMIN", "MANAGER")


def _error(exc: Exception):
    if isinstance(exc, (TableNotFoundError, RowNotFoundError)):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    return jsonify({"error": str(exc)}), 400


def _write_denied(table: str):
    spec = table_service.get_spec(table)
    if spec.restricted and g.session_context.role not in WRITE_ROLES:
        current_app.logger.warning(
            "Denied %s write on %s for profile %s", request.method, table, g.current_profile.id
        )
        return jsonify({"error": "Permission denied", "required_roles": list(WRITE_ROLES)}), 403
    return None


@rest_bp.get("/<table>")
@require_api_key
@require_auth
def list_rows_route(table: str):
    try:
        rows = table_service.list_rows(table, order=request.args.get("order"))
        return jsonify([row.to_dict() for row in rows])
    except (TableNotFoundError, ValidationError) as exc:
        return _error(exc)


@rest_bp.post("/<table>")
@require_api_key
@require_auth
def insert_rows_route(table: str):
    try:
        denied = _write_denied(table)
        if denied:
            return denied
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({"error": "Invalid JSON payload"}), 400
        rows = table_service.insert_rows(table, payload)
        return jsonify([row.to_dict() for row in rows]), 201
    except (TableNotFoundError, ValidationError, ConflictError) as exc:
        return _error(exc)


@rest_bp.post("/<table>/upsert")
@require_api_key
@require_auth
def upsert_rows_route(table: str):
    try:
        denied = _write_denied(table)
        if denied:
            return denied
        rows = table_service.upsert_rows(table, request.get_json(silent=True))
        return jsonify([row.to_dict() for row in rows])
    except (TableNotFoundError, ValidationError, ConflictError) as exc:
        return _error(exc)


@rest_bp.patch("/<table>/<row_id>")
@require_api_key
@require_auth
def update_row_route(table: str, row_id: str):
    try:
        denied = _write_denied(table)
        if denied:
            return denied
        row = table_service.update_row(table, row_id, request.get_json(silent=True) or {})
        return jsonify(row.to_dict())
    except (TableNotFoundError, RowNotFoundError, ValidationError, ConflictError) as exc:
        return _error(exc)


@rest_bp.delete("/<table>/<row_id>")
@require_api_key
@require_auth
def delete_row_route(table: str, row_id: str):
    try:
        denied = _write_denied(table)
        if denied:
            return denied
        table_service.delete_row(table, row_id)
        return "", 204
    except (TableNotFoundError, RowNotFoundError, ConflictError) as exc:
        return _error(exc)
