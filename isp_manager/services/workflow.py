"""
Workflow action dispatcher.

Maps the public action names onto the named transition functions so that
callers outside HTTP (CLI, jobs, tests) drive the engine by name:

    perform_action("approve_pnl", caller, project_id=7)

P&L actions take the project id and resolve its P&L; deletion decisions
take the project id and resolve its pending DeletionRequest.
"""

import logging

from sqlalchemy import select

from isp_manager.core.exceptions import NotFoundError, ValidationError
from isp_manager.models import db
from isp_manager.models.costing import Pnl
from isp_manager.models.deletion import DeletionRequest
from isp_manager.services import billing_service, deletion_service, pnl_service, project_service
from isp_manager.services.authorization import Action

logger = logging.getLogger(__name__)


def _pnl_id_for(project_id):
    pnl_id = db.session.execute(select(Pnl.id).where(Pnl.project_id == project_id)).scalar_one_or_none()
    if pnl_id is None:
        raise NotFoundError(resource="P&L for project", resource_id=project_id)
    return pnl_id


def _deletion_request_id_for(project_id):
    req_id = db.session.execute(
        select(DeletionRequest.id).where(DeletionRequest.project_id == project_id)
    ).scalar_one_or_none()
    if req_id is None:
        raise NotFoundError(resource="Deletion request for project", resource_id=project_id)
    return req_id


_HANDLERS = {
    Action.CREATE_PROJECT:         lambda c, pid, p: project_service.create_project(c, p),
    Action.CREATE_BOQ:             lambda c, pid, p: project_service.create_boq(c, pid, p),
    Action.CREATE_PNL:             lambda c, pid, p: project_service.create_pnl(c, pid, p),
    Action.APPROVE_PNL:            lambda c, pid, p: pnl_service.approve_pnl(c, _pnl_id_for(pid), p),
    Action.REJECT_PNL:             lambda c, pid, p: pnl_service.reject_pnl(c, _pnl_id_for(pid), p),
    Action.REVIEW_PNL:             lambda c, pid, p: pnl_service.review_pnl(c, _pnl_id_for(pid), p),
    Action.UPDATE_BOQ_FOR_REVIEW:  lambda c, pid, p: pnl_service.update_boq_for_review(c, _pnl_id_for(pid), p),
    Action.INITIATE_INSTALLATION:  lambda c, pid, p: project_service.initiate_installation(c, pid),
    Action.ASSIGN_PROJECT_MANAGER: lambda c, pid, p: project_service.assign_project_manager(c, pid, p),
    Action.UPDATE_PROJECT_STATUS:  lambda c, pid, p: project_service.update_project_status(c, pid, p),
    Action.SUBMIT_ACCEPTANCE_FORM: lambda c, pid, p: project_service.submit_acceptance_form(c, pid, p),
    Action.INITIATE_BILLING:       lambda c, pid, p: billing_service.initiate_billing(c, pid),
    Action.COMPLETE_BILLING:       lambda c, pid, p: billing_service.complete_billing(c, pid, p),
    Action.REQUEST_DELETION:       lambda c, pid, p: deletion_service.request_or_execute_deletion(c, pid, p),
    Action.APPROVE_DELETION:       lambda c, pid, p: deletion_service.approve_deletion_request(
        c, _deletion_request_id_for(pid), p),
    Action.REJECT_DELETION:        lambda c, pid, p: deletion_service.reject_deletion_request(
        c, _deletion_request_id_for(pid), p),
    Action.LIST_DELETION_REQUESTS: lambda c, pid, p: deletion_service.list_deletion_requests(c, p.get("status")),
    Action.LIST_PENDING_PNLS:      lambda c, pid, p: pnl_service.list_pending_pnls(c),
}


def perform_action(action_name, caller, project_id=None, payload=None):
    """Run the transition registered under ``action_name`` and return its result."""
    try:
        action = Action(action_name)
    except ValueError:
        raise ValidationError(f"Unknown action '{action_name}'", details={"action": "unknown"})
    if project_id is None and action not in (
        Action.CREATE_PROJECT, Action.LIST_DELETION_REQUESTS, Action.LIST_PENDING_PNLS,
    ):
        raise ValidationError(f"Action '{action.value}' requires a project id", details={"project_id": "required"})

    logger.debug("perform_action %s project_id=%s user_id=%s", action.value, project_id, caller.user_id)
    return _HANDLERS[action](caller, project_id, payload or {})
