"""
Auth Blueprint: registration, login and current-user lookup.

Endpoints:
    POST /api/auth/register   - create a user, returns a token
    POST /api/auth/login      - email + password, returns a token
    GET  /api/auth/me         - the authenticated user
"""

import logging

from flask import Blueprint, g, jsonify, request

from isp_manager.middleware.jwt_auth import require_auth
from isp_manager.models import db
from isp_manager.models.auth import User
from isp_manager.services.jwt_service import token_response
from isp_manager.services.user_service import authenticate_user, register_user
from isp_manager.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
register_error_handlers(auth_bp)


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Body: { "email": "...", "password": "...", "role": "SALES", "name": "..." }
    """
    data = request.get_json(silent=True) or {}
    user = register_user(
        email=data.get("email"),
        password=data.get("password"),
        role=data.get("role"),
        name=data.get("name"),
    )
    return jsonify(token_response(user)), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return an access token.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    user = authenticate_user(data.get("email", ""), data.get("password", ""))
    logger.info("Login succeeded user_id=%s", user.id)
    return jsonify(token_response(user)), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    user = db.session.get(User, g.caller.user_id)
    return jsonify(user.to_dict()), 200
