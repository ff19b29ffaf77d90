"""
Tests: perform_action dispatcher.
"""

import pytest

from isp_manager.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from isp_manager.models import db
from isp_manager.models.project import Project
from isp_manager.services.authorization import Action
from isp_manager.services.workflow import _HANDLERS, perform_action

CRD = {"project_type": "New Link", "billing_trigger": "On Acceptance", "service_type": "DIA"}


def test_every_action_is_dispatchable():
    assert set(_HANDLERS) == set(Action)


def test_unknown_action(sales):
    with pytest.raises(ValidationError):
        perform_action("launch_rocket", sales, project_id=1)


def test_project_id_required(admin):
    with pytest.raises(ValidationError) as exc:
        perform_action("approve_pnl", admin)
    assert exc.value.details == {"project_id": "required"}


def test_drive_cycle_by_name(admin, sales, survey):
    project = perform_action("create_project", sales, payload={
        "project_name": "By Name", "customer_name": "Acme", "crd": CRD,
    })
    pid = project["id"]
    perform_action("create_boq", survey, pid, {"total_cost": 1000})
    perform_action("create_pnl", sales, pid, {
        "one_time_revenue": 500, "recurring_revenue": 200, "contract_term_months": 12,
    })

    assert len(perform_action("list_pending_pnls", admin)) == 1
    perform_action("reject_pnl", admin, pid, {"admin_comments": "bad numbers"})
    perform_action("review_pnl", sales, pid)
    result = perform_action("update_boq_for_review", survey, pid, {"total_cost": 800})
    assert result["pnl"]["gross_profit"] == 2100
    perform_action(Action.APPROVE_PNL, admin, pid)
    result = perform_action("initiate_installation", sales, pid)
    assert result["status"] == "Installation Pending"


def test_pnl_action_without_pnl(new_project, admin):
    pid = new_project()["id"]
    with pytest.raises(NotFoundError):
        perform_action("approve_pnl", admin, pid)


def test_deletion_decisions_by_project_id(new_project, admin, sales):
    pid = new_project()["id"]
    perform_action("request_deletion", sales, pid, {"reason": "Cancelled"})
    assert len(perform_action("list_deletion_requests", admin, payload={"status": "Pending"})) == 1

    with pytest.raises(ForbiddenError):
        perform_action("approve_deletion", sales, pid)
    result = perform_action("approve_deletion", admin, pid)
    assert result["deleted"] is True
    assert db.session.get(Project, pid) is None


def test_reject_deletion_without_request(new_project, admin):
    pid = new_project()["id"]
    with pytest.raises(NotFoundError):
        perform_action("reject_deletion", admin, pid, {"comments": "no"})
