"""
Billing Blueprint.

Endpoints:
    PUT /api/billing/<project_id>/initiate   - hand a completed project to finance
    PUT /api/billing/<project_id>/complete   - body: { "billing_reference": "..." } (optional)
"""

from flask import Blueprint, g, jsonify, request

from isp_manager.middleware.jwt_auth import require_auth
from isp_manager.services import billing_service
from isp_manager.utils.errors import register_error_handlers

billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")
register_error_handlers(billing_bp)


@billing_bp.route("/<int:project_id>/initiate", methods=["PUT"])
@require_auth
def initiate(project_id):
    return jsonify({
        "message": "Billing initiated successfully.",
        "project": billing_service.initiate_billing(g.caller, project_id),
    }), 200


@billing_bp.route("/<int:project_id>/complete", methods=["PUT"])
@require_auth
def complete(project_id):
    project = billing_service.complete_billing(g.caller, project_id, request.get_json(silent=True) or {})
    return jsonify({"message": "Billing marked as completed successfully.", "project": project}), 200
