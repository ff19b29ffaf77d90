"""
ISP Project Manager
Notification Blueprint - the caller's inbox.

Endpoints:
    GET /api/notifications                  - newest first (unread_only, limit, offset)
    GET /api/notifications/unread           - { "count": N }
    PUT /api/notifications/<id>/read        - recipient only
    PUT /api/notifications/read-all
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from isp_manager.middleware.jwt_auth import require_auth
from isp_manager.services.notification import NotificationService
from isp_manager.utils.errors import register_error_handlers
from isp_manager.utils.helpers import MAX_ID

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")
register_error_handlers(notification_bp)


@notification_bp.route("", methods=["GET"])
@require_auth
def list_notifications():
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = max(min(request.args.get("limit", 50, type=int), 200), 1)
    offset = max(min(request.args.get("offset", 0, type=int), MAX_ID), 0)

    items, total = NotificationService.list_for_recipient(
        g.caller.user_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(g.caller.user_id),
    }), 200


@notification_bp.route("/unread", methods=["GET"])
@require_auth
def unread_count():
    return jsonify({"count": NotificationService.unread_count(g.caller.user_id)}), 200


@notification_bp.route("/<int:notification_id>/read", methods=["PUT"])
@require_auth
def mark_read(notification_id):
    notif = NotificationService.mark_read(notification_id, g.caller.user_id)
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/read-all", methods=["PUT"])
@require_auth
def mark_all_read():
    count = NotificationService.mark_all_read(g.caller.user_id)
    return jsonify({"marked_read": count}), 200
