"""
Project Blueprint - project lifecycle endpoints.

Endpoints:
    GET  /api/projects                                  - list (filters: status, sales_person_id)
    POST /api/projects                                  - CreateProject (with CRD)
    GET  /api/projects/<project_id>                     - detail with children
    POST /api/projects/<project_id>/boq                 - CreateBOQ
    POST /api/projects/<project_id>/pnl                 - CreatePnL
    PUT  /api/projects/<project_id>/initiate-installation
    PUT  /api/projects/<project_id>/assign-pm
    PUT  /api/projects/<project_id>/status              - manual status move
    POST /api/projects/<project_id>/acceptance          - SubmitAcceptanceForm
    POST /api/projects/<project_id>/delete              - delete now (ADMIN) or file a request (owner)

Views only translate HTTP into service calls; services own validation,
authorization and commits.
"""

from flask import Blueprint, g, jsonify, request

from isp_manager.middleware.jwt_auth import require_auth
from isp_manager.services import deletion_service, project_service
from isp_manager.utils.errors import register_error_handlers

project_bp = Blueprint("projects", __name__, url_prefix="/api/projects")
register_error_handlers(project_bp)


def _body() -> dict:
    return request.get_json(silent=True) or {}


@project_bp.route("", methods=["GET"])
@require_auth
def list_projects():
    return jsonify(project_service.list_projects(
        status=request.args.get("status"),
        sales_person_id=request.args.get("sales_person_id", type=int),
    )), 200


@project_bp.route("", methods=["POST"])
@require_auth
def create_project():
    return jsonify(project_service.create_project(g.caller, _body())), 201


@project_bp.route("/<int:project_id>", methods=["GET"])
@require_auth
def get_project(project_id):
    return jsonify(project_service.get_project(project_id)), 200


@project_bp.route("/<int:project_id>/boq", methods=["POST"])
@require_auth
def create_boq(project_id):
    return jsonify(project_service.create_boq(g.caller, project_id, _body())), 201


@project_bp.route("/<int:project_id>/pnl", methods=["POST"])
@require_auth
def create_pnl(project_id):
    return jsonify(project_service.create_pnl(g.caller, project_id, _body())), 201


@project_bp.route("/<int:project_id>/initiate-installation", methods=["PUT"])
@require_auth
def initiate_installation(project_id):
    return jsonify(project_service.initiate_installation(g.caller, project_id)), 200


@project_bp.route("/<int:project_id>/assign-pm", methods=["PUT"])
@require_auth
def assign_project_manager(project_id):
    return jsonify(project_service.assign_project_manager(g.caller, project_id, _body())), 200


@project_bp.route("/<int:project_id>/status", methods=["PUT"])
@require_auth
def update_project_status(project_id):
    return jsonify(project_service.update_project_status(g.caller, project_id, _body())), 200


@project_bp.route("/<int:project_id>/acceptance", methods=["POST"])
@require_auth
def submit_acceptance_form(project_id):
    return jsonify(project_service.submit_acceptance_form(g.caller, project_id, _body())), 201


@project_bp.route("/<int:project_id>/delete", methods=["POST"])
@require_auth
def delete_project(project_id):
    result = deletion_service.request_or_execute_deletion(g.caller, project_id, _body())
    return jsonify(result), 200 if result["deleted"] else 201
