"""
User Blueprint.

Endpoints:
    GET /api/users?role=PROJECTS_ADMIN&role=ADMIN - users, optionally filtered by role
"""

from flask import Blueprint, jsonify, request

from isp_manager.middleware.jwt_auth import require_auth
from isp_manager.services.user_service import list_users
from isp_manager.utils.errors import register_error_handlers

user_bp = Blueprint("users", __name__, url_prefix="/api")
register_error_handlers(user_bp)


@user_bp.route("/users", methods=["GET"])
@require_auth
def get_users():
    return jsonify(list_users(request.args.getlist("role"))), 200
