"""
JWT Auth Middleware - Parses the Bearer token and sets ``g.caller``.

The token only proves identity. Role and active flag are read from the
users table on every request, so a role change or deactivation applies
to tokens that were already issued.

Usage in a blueprint:
    @project_bp.route("/projects", methods=["POST"])
    @require_auth
    def create_project():
        result = project_service.create_project(g.caller, request.get_json(silent=True) or {})
"""

import logging
from functools import wraps

import jwt as pyjwt
from flask import g, request

from isp_manager.core.exceptions import AuthenticationError
from isp_manager.services.authorization import Caller
from isp_manager.services.jwt_service import decode_access_token
from isp_manager.services.user_service import get_active_user

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.caller = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]
        try:
            payload = decode_access_token(token)
            user_id = int(payload["sub"])
        except pyjwt.ExpiredSignatureError:
            g.auth_error = "Token expired"
            return
        except (pyjwt.InvalidTokenError, KeyError, ValueError):
            g.auth_error = "Invalid token"
            return

        user = get_active_user(user_id)
        if user is None:
            g.auth_error = "User not found or inactive"
            return
        g.caller = Caller(user_id=user.id, role=user.role, name=user.name, email=user.email)


def require_auth(fn):
    """Reject the request with 401 unless ``g.caller`` was resolved."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "caller", None) is None:
            reason = getattr(g, "auth_error", None) or "Authentication required"
            logger.debug("Unauthenticated request to %s: %s", request.path, reason)
            raise AuthenticationError(reason)
        return fn(*args, **kwargs)

    return wrapper
