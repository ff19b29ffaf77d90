"""
Deletion Request Blueprint.

Endpoints:
    GET  /api/deletion-requests                     - all requests (ADMIN), filter: status
    POST /api/deletion-requests                     - body: { "project_id": 1, "reason": "..." }
    PUT  /api/deletion-requests/<request_id>/approve - purge the project
    PUT  /api/deletion-requests/<request_id>/reject  - body: { "comments": "..." } (required)
"""

from flask import Blueprint, g, jsonify, request

from isp_manager.core.exceptions import ValidationError
from isp_manager.middleware.jwt_auth import require_auth
from isp_manager.services import deletion_service
from isp_manager.utils.errors import register_error_handlers

deletion_bp = Blueprint("deletion_requests", __name__, url_prefix="/api/deletion-requests")
register_error_handlers(deletion_bp)


def _body() -> dict:
    return request.get_json(silent=True) or {}


@deletion_bp.route("", methods=["GET"])
@require_auth
def list_requests():
    return jsonify(deletion_service.list_deletion_requests(g.caller, request.args.get("status"))), 200


@deletion_bp.route("", methods=["POST"])
@require_auth
def create_request():
    data = _body()
    project_id = data.get("project_id")
    if not isinstance(project_id, int) or isinstance(project_id, bool):
        raise ValidationError("project_id is required", details={"project_id": "required"})
    result = deletion_service.request_or_execute_deletion(g.caller, project_id, data)
    return jsonify(result), 200 if result["deleted"] else 201


@deletion_bp.route("/<int:request_id>/approve", methods=["PUT"])
@require_auth
def approve(request_id):
    return jsonify(deletion_service.approve_deletion_request(g.caller, request_id, _body())), 200


@deletion_bp.route("/<int:request_id>/reject", methods=["PUT"])
@require_auth
def reject(request_id):
    return jsonify(deletion_service.reject_deletion_request(g.caller, request_id, _body())), 200
