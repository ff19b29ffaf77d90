"""
Tests: project deletion and deletion requests.

Covers:
    - ADMIN deletes immediately
    - owning salesperson files a Pending request; admins are notified
    - approve purges project, children, notifications and the request
    - reject keeps the project and records the response
"""

import pytest

from isp_manager.core.exceptions import ConflictError, NotFoundError, ValidationError
from isp_manager.models import db
from isp_manager.models.acceptance import AcceptanceForm
from isp_manager.models.costing import Boq, Pnl
from isp_manager.models.deletion import DeletionRequest
from isp_manager.models.notification import Notification
from isp_manager.models.project import Crd, Project
from isp_manager.services import deletion_service
from isp_manager.services.notification import NotificationService


def _rows_for(pid):
    return {
        "project": Project.query.filter_by(id=pid).count(),
        "crd": Crd.query.filter_by(project_id=pid).count(),
        "boq": Boq.query.filter_by(project_id=pid).count(),
        "pnl": Pnl.query.filter_by(project_id=pid).count(),
        "acceptance": AcceptanceForm.query.filter_by(project_id=pid).count(),
        "deletion_request": DeletionRequest.query.filter_by(project_id=pid).count(),
        "notification": Notification.query.filter_by(project_id=pid).count(),
    }


def test_admin_deletes_immediately(drive_project, admin):
    pid = drive_project("Completed")
    assert _rows_for(pid)["notification"] > 0

    result = deletion_service.request_or_execute_deletion(admin, pid, {"reason": "Duplicate entry"})
    assert result == {"deleted": True, "project_id": pid}
    assert set(_rows_for(pid).values()) == {0}


def test_reason_is_required(new_project, admin, sales):
    pid = new_project()["id"]
    for caller in (admin, sales):
        with pytest.raises(ValidationError):
            deletion_service.request_or_execute_deletion(caller, pid, {"reason": "  "})
    assert db.session.get(Project, pid) is not None


def test_sales_owner_files_request_and_admins_are_notified(new_project, admin, sales):
    pid = new_project()["id"]
    result = deletion_service.request_or_execute_deletion(sales, pid, {"reason": "Customer cancelled"})

    assert result["deleted"] is False
    req = result["deletion_request"]
    assert req["status"] == "Pending"
    assert req["requested_by"]["id"] == sales.user_id
    assert req["project"]["project_name"] == "Acme Fibre Link"

    note = Notification.query.filter_by(recipient_id=admin.user_id).one()
    assert note.title == "Deletion Request Submitted"
    assert note.link == "/deletion-requests"
    assert "Sam Sales" in note.message


def test_second_request_conflicts(new_project, sales, admin):
    pid = new_project()["id"]
    deletion_service.request_or_execute_deletion(sales, pid, {"reason": "Customer cancelled"})
    with pytest.raises(ConflictError):
        deletion_service.request_or_execute_deletion(sales, pid, {"reason": "Again"})
    # An open request also blocks the admin shortcut.
    with pytest.raises(ConflictError):
        deletion_service.request_or_execute_deletion(admin, pid, {"reason": "Now"})
    assert DeletionRequest.query.count() == 1


def test_approve_purges_everything(drive_project, admin, sales):
    pid = drive_project("Completed")
    req = deletion_service.request_or_execute_deletion(sales, pid, {"reason": "Contract void"})
    request_id = req["deletion_request"]["id"]

    result = deletion_service.approve_deletion_request(admin, request_id, {"comments": "OK"})
    assert result["deleted"] is True
    assert result["project_id"] == pid
    assert result["deletion_request"]["status"] == "Approved"
    assert result["deletion_request"]["response_comments"] == "OK"

    assert set(_rows_for(pid).values()) == {0}
    assert db.session.get(DeletionRequest, request_id) is None

    # The requester is told, with no link back to the deleted project.
    note = Notification.query.filter_by(recipient_id=sales.user_id, title="Deletion Request Approved").one()
    assert note.project_id is None
    assert note.link is None


def test_approve_other_projects_untouched(drive_project, admin, sales):
    keep = drive_project("Approved", name="Keep Me")
    drop = drive_project("CRD Submitted", name="Drop Me")
    req = deletion_service.request_or_execute_deletion(sales, drop, {"reason": "Test entry"})
    deletion_service.approve_deletion_request(admin, req["deletion_request"]["id"])

    rows = _rows_for(keep)
    assert rows["project"] == 1 and rows["boq"] == 1 and rows["pnl"] == 1


def test_reject_keeps_project(new_project, admin, sales):
    pid = new_project()["id"]
    req = deletion_service.request_or_execute_deletion(sales, pid, {"reason": "Customer cancelled"})
    request_id = req["deletion_request"]["id"]

    with pytest.raises(ValidationError):
        deletion_service.reject_deletion_request(admin, request_id, {"comments": ""})

    result = deletion_service.reject_deletion_request(admin, request_id, {"comments": "Still under contract"})
    assert result["status"] == "Rejected"
    assert result["responded_by"]["id"] == admin.user_id
    assert result["project"]["id"] == pid
    assert db.session.get(Project, pid) is not None

    note = Notification.query.filter_by(recipient_id=sales.user_id, title="Deletion Request Rejected").one()
    assert note.type == "error"
    assert "Reason: Still under contract" in note.message


def test_decided_request_cannot_be_decided_again(new_project, admin, sales):
    pid = new_project()["id"]
    req = deletion_service.request_or_execute_deletion(sales, pid, {"reason": "Customer cancelled"})
    request_id = req["deletion_request"]["id"]
    deletion_service.reject_deletion_request(admin, request_id, {"comments": "No"})

    with pytest.raises(ConflictError):
        deletion_service.approve_deletion_request(admin, request_id)
    with pytest.raises(ConflictError):
        deletion_service.reject_deletion_request(admin, request_id, {"comments": "Still no"})
    # A rejected request still blocks a new one.
    with pytest.raises(ConflictError):
        deletion_service.request_or_execute_deletion(sales, pid, {"reason": "Please"})


def test_unknown_request(admin):
    with pytest.raises(NotFoundError):
        deletion_service.approve_deletion_request(admin, 77)


def test_list_deletion_requests(new_project, admin, sales):
    a = new_project(name="A")["id"]
    b = new_project(name="B")["id"]
    first = deletion_service.request_or_execute_deletion(sales, a, {"reason": "r1"})["deletion_request"]
    deletion_service.request_or_execute_deletion(sales, b, {"reason": "r2"})
    deletion_service.reject_deletion_request(admin, first["id"], {"comments": "no"})

    assert len(deletion_service.list_deletion_requests(admin)) == 2
    pending = deletion_service.list_deletion_requests(admin, status="Pending")
    assert [r["project_id"] for r in pending] == [b]


def test_purge_for_project_only_touches_that_project(new_project, admin, sales):
    a = new_project(name="A")["id"]
    b = new_project(name="B")["id"]
    for pid in (a, b):
        NotificationService.notify(recipient_id=sales.user_id, title="t", message="m", project_id=pid)
    NotificationService.purge_for_project(a)
    db.session.commit()
    assert Notification.query.filter_by(project_id=a).count() == 0
    assert Notification.query.filter_by(project_id=b).count() == 1
