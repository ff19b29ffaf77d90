"""
P&L Blueprint - approval cycle endpoints.

Endpoints:
    GET /api/pnl/pending                 - P&Ls awaiting decision (ADMIN)
    PUT /api/pnl/<pnl_id>/approve        - body: { "admin_comments": "..." } (optional)
    PUT /api/pnl/<pnl_id>/reject         - body: { "admin_comments": "..." } (required)
    PUT /api/pnl/<pnl_id>/review         - body: { "admin_comments": "..." } (optional)
    PUT /api/pnl/<pnl_id>/update-boq     - body: { "total_cost": 800, "notes": "..." }
"""

from flask import Blueprint, g, jsonify, request

from isp_manager.middleware.jwt_auth import require_auth
from isp_manager.services import pnl_service
from isp_manager.utils.errors import register_error_handlers

pnl_bp = Blueprint("pnl", __name__, url_prefix="/api/pnl")
register_error_handlers(pnl_bp)


def _body() -> dict:
    return request.get_json(silent=True) or {}


@pnl_bp.route("/pending", methods=["GET"])
@require_auth
def list_pending():
    return jsonify(pnl_service.list_pending_pnls(g.caller)), 200


@pnl_bp.route("/<int:pnl_id>/approve", methods=["PUT"])
@require_auth
def approve(pnl_id):
    return jsonify(pnl_service.approve_pnl(g.caller, pnl_id, _body())), 200


@pnl_bp.route("/<int:pnl_id>/reject", methods=["PUT"])
@require_auth
def reject(pnl_id):
    return jsonify(pnl_service.reject_pnl(g.caller, pnl_id, _body())), 200


@pnl_bp.route("/<int:pnl_id>/review", methods=["PUT"])
@require_auth
def review(pnl_id):
    return jsonify(pnl_service.review_pnl(g.caller, pnl_id, _body())), 200


@pnl_bp.route("/<int:pnl_id>/update-boq", methods=["PUT"])
@require_auth
def update_boq(pnl_id):
    return jsonify(pnl_service.update_boq_for_review(g.caller, pnl_id, _body())), 200
