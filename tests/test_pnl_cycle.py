"""
Tests: P&L approval cycle.

Covers:
    - double approval: second attempt conflicts, state equals one approval
    - state-reset law for UpdateBOQForReview
    - out-of-order decisions
    - pending list and notification recipients
"""

import pytest

from isp_manager.core.exceptions import ConflictError, NotFoundError, ValidationError
from isp_manager.models import db
from isp_manager.models.costing import Pnl
from isp_manager.models.notification import Notification
from isp_manager.models.project import Project
from isp_manager.services import pnl_service


@pytest.fixture()
def pending(drive_project):
    """(project_id, pnl_id) for a P&L awaiting approval."""
    pid = drive_project("Pending Approval")
    return pid, db.session.get(Project, pid).pnl.id


@pytest.fixture()
def under_review(pending, admin, sales):
    pid, pnl_id = pending
    pnl_service.reject_pnl(admin, pnl_id, {"admin_comments": "Recurring price too low"})
    pnl_service.review_pnl(sales, pnl_id, {})
    return pid, pnl_id


def _state(pid, pnl_id):
    pnl = db.session.get(Pnl, pnl_id)
    project = db.session.get(Project, pid)
    return (
        pnl.approval_status, pnl.approver_id, pnl.approval_date, pnl.admin_comments,
        project.status,
    )


def test_double_approval_conflicts_and_keeps_first_result(pending, admin, make_caller):
    pid, pnl_id = pending
    pnl_service.approve_pnl(admin, pnl_id, {"admin_comments": "Good margin"})
    after_first = _state(pid, pnl_id)

    second_admin = make_caller("ADMIN", email="admin2@example.com")
    with pytest.raises(ConflictError) as exc:
        pnl_service.approve_pnl(second_admin, pnl_id, {"admin_comments": "Me too"})
    assert exc.value.details["approval_status"] == "Approved"

    db.session.expire_all()
    assert _state(pid, pnl_id) == after_first
    assert after_first[0] == "Approved"
    assert after_first[1] == admin.user_id
    assert after_first[3] == "Good margin"
    assert after_first[4] == "Approved"


def test_approve_keeps_comments_when_none_given(pending, admin):
    pid, pnl_id = pending
    result = pnl_service.approve_pnl(admin, pnl_id)
    assert result["pnl"]["admin_comments"] is None
    assert result["pnl"]["approval_date"] is not None
    assert result["project"]["status"] == "Approved"


def test_reject_after_approve_conflicts(pending, admin):
    _, pnl_id = pending
    pnl_service.approve_pnl(admin, pnl_id, {})
    with pytest.raises(ConflictError):
        pnl_service.reject_pnl(admin, pnl_id, {"admin_comments": "Changed my mind"})


def test_review_requires_rejected(pending, admin):
    _, pnl_id = pending
    with pytest.raises(ConflictError):
        pnl_service.review_pnl(admin, pnl_id, {})


def test_review_replaces_comments_only_when_given(pending, admin):
    pid, pnl_id = pending
    pnl_service.reject_pnl(admin, pnl_id, {"admin_comments": "Original reason"})
    result = pnl_service.review_pnl(admin, pnl_id, {"admin_comments": "Please revise the BOQ"})
    assert result["pnl"]["admin_comments"] == "Please revise the BOQ"
    assert db.session.get(Project, pid).status == "P&L Under Review"


def test_update_boq_requires_under_review(pending, survey):
    _, pnl_id = pending
    with pytest.raises(ConflictError):
        pnl_service.update_boq_for_review(survey, pnl_id, {"total_cost": 800})


@pytest.mark.parametrize("cost", [0, -10, None, 1e20])
def test_update_boq_rejects_bad_cost(under_review, survey, cost):
    pid, pnl_id = under_review
    with pytest.raises(ValidationError):
        pnl_service.update_boq_for_review(survey, pnl_id, {"total_cost": cost})
    assert db.session.get(Project, pid).boq.total_cost == 1000


@pytest.mark.parametrize("comments", [None, "Recurring price too low", ""])
def test_state_reset_law(pending, admin, sales, projects_admin, comments):
    pid, pnl_id = pending
    pnl_service.reject_pnl(admin, pnl_id, {"admin_comments": "Needs work"})
    review_payload = {} if comments is None else {"admin_comments": comments}
    pnl_service.review_pnl(sales, pnl_id, review_payload)

    result = pnl_service.update_boq_for_review(
        projects_admin, pnl_id, {"total_cost": 800, "notes": "Shorter fibre route"},
    )
    pnl = db.session.get(Pnl, pnl_id)
    assert pnl.approval_status == "Pending"
    assert pnl.approver_id is None
    assert pnl.approval_date is None
    assert pnl.boq_cost == 800
    assert db.session.get(Project, pid).status == "Pending Approval"
    assert result["boq"]["notes"] == "Shorter fibre route"
    assert result["boq"]["prepared_by"]["id"] == projects_admin.user_id


def test_revised_pnl_can_be_approved(under_review, admin, survey):
    pid, pnl_id = under_review
    pnl_service.update_boq_for_review(survey, pnl_id, {"total_cost": 800})
    result = pnl_service.approve_pnl(admin, pnl_id, {})
    assert result["pnl"]["gross_profit"] == 2100
    assert db.session.get(Project, pid).status == "Approved"


def test_unknown_pnl(admin):
    with pytest.raises(NotFoundError):
        pnl_service.approve_pnl(admin, 12345, {})


def test_list_pending_pnls(drive_project, admin):
    first = drive_project("Pending Approval", name="First")
    drive_project("Approved", name="Second")
    items = pnl_service.list_pending_pnls(admin)
    assert [i["project"]["id"] for i in items] == [first]
    assert items[0]["approval_status"] == "Pending"


class TestNotifications:
    def test_approve_notifies_submitter(self, pending, admin, sales):
        pid, pnl_id = pending
        pnl_service.approve_pnl(admin, pnl_id, {})
        note = Notification.query.filter_by(recipient_id=sales.user_id, title="P&L Approved").one()
        assert note.type == "success"
        assert note.creator_id == admin.user_id
        assert note.project_id == pid

    def test_reject_notifies_submitter_with_error(self, pending, admin, sales):
        _, pnl_id = pending
        pnl_service.reject_pnl(admin, pnl_id, {"admin_comments": "No"})
        note = Notification.query.filter_by(recipient_id=sales.user_id, title="P&L Rejected").one()
        assert note.type == "error"

    def test_review_notifies_other_admins(self, pending, admin, make_caller):
        _, pnl_id = pending
        other_admin = make_caller("ADMIN", email="admin2@example.com")
        pnl_service.reject_pnl(admin, pnl_id, {"admin_comments": "No"})
        pnl_service.review_pnl(admin, pnl_id, {})
        recipients = {n.recipient_id for n in Notification.query.filter_by(title="P&L Sent for Review")}
        assert recipients == {other_admin.user_id}

    def test_boq_revision_notifies_admins_and_submitter(self, under_review, admin, sales, survey):
        _, pnl_id = under_review
        pnl_service.update_boq_for_review(survey, pnl_id, {"total_cost": 900})
        resubmitted = {n.recipient_id for n in Notification.query.filter_by(title="P&L Resubmitted for Approval")}
        assert resubmitted == {admin.user_id}
        recalculated = Notification.query.filter_by(title="P&L Recalculated").one()
        assert recalculated.recipient_id == sales.user_id
