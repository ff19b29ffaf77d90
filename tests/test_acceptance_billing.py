"""
Tests: customer acceptance and billing.

Covers:
    - SubmitAcceptanceForm guards, effects and notifications
    - InitiateBilling / CompleteBilling
    - promote_completed_billing sweep (idempotent)
"""

from datetime import date

import pytest

from isp_manager.core.exceptions import ConflictError, ValidationError
from isp_manager.models import db
from isp_manager.models.acceptance import AcceptanceForm
from isp_manager.models.notification import Notification
from isp_manager.models.project import Project
from isp_manager.services import billing_service, project_service

ACCEPTANCE = {
    "acceptance_date": "2026-03-01",
    "billing_start_date": "15.03.2026",
    "customer_signature": "https://docs.example.com/signed/acme.pdf",
    "signed_by_name": "Jordan Customer",
    "service_id": "SVC-0042",
}


class TestAcceptance:
    def test_completes_project_and_sets_billing_pending(self, drive_project, projects_admin, sales):
        pid = drive_project("Soak Period")
        result = project_service.submit_acceptance_form(projects_admin, pid, dict(ACCEPTANCE))

        form = result["acceptance_form"]
        assert form["billing_start_date"] == "2026-03-15"
        assert form["service_id"] == "SVC-0042"
        assert form["logged_by"]["id"] == projects_admin.user_id
        assert result["project"]["status"] == "Completed"
        assert result["project"]["billing_status"] == "Pending"

        titles = sorted(n.title for n in Notification.query.filter_by(recipient_id=sales.user_id, project_id=pid))
        assert "Project Completed" in titles
        assert "Project Ready for Billing" in titles

    def test_requires_soak_period(self, drive_project, projects_admin):
        pid = drive_project("UAT Pending")
        with pytest.raises(ConflictError):
            project_service.submit_acceptance_form(projects_admin, pid, dict(ACCEPTANCE))
        assert AcceptanceForm.query.count() == 0

    @pytest.mark.parametrize("missing", ["acceptance_date", "billing_start_date", "customer_signature"])
    def test_required_fields(self, drive_project, projects_admin, missing):
        pid = drive_project("Soak Period")
        payload = dict(ACCEPTANCE)
        payload.pop(missing)
        with pytest.raises(ValidationError):
            project_service.submit_acceptance_form(projects_admin, pid, payload)
        assert db.session.get(Project, pid).status == "Soak Period"

    def test_invalid_date(self, drive_project, projects_admin):
        pid = drive_project("Soak Period")
        with pytest.raises(ValidationError):
            project_service.submit_acceptance_form(projects_admin, pid, {**ACCEPTANCE, "acceptance_date": "soon"})

    def test_second_form_conflicts(self, drive_project, projects_admin):
        pid = drive_project("Completed")
        with pytest.raises(ConflictError):
            project_service.submit_acceptance_form(projects_admin, pid, dict(ACCEPTANCE))
        assert AcceptanceForm.query.filter_by(project_id=pid).count() == 1


class TestBilling:
    def test_full_billing_cycle(self, drive_project, finance, sales):
        pid = drive_project("Completed")

        initiated = billing_service.initiate_billing(sales, pid)
        assert initiated["billing_status"] == "Initiated"
        assert initiated["billing_start_date"] == "2026-03-15"

        request_note = Notification.query.filter_by(recipient_id=finance.user_id, title="Billing Request").one()
        assert "Billing start date: 2026-03-15" in request_note.message
        # The salesperson initiated it, so no "Billing Initiated" copy.
        assert Notification.query.filter_by(title="Billing Initiated").count() == 0

        billed = billing_service.complete_billing(finance, pid, {"billing_reference": "INV-2026-001"})
        assert billed["billing_status"] == "Billed"
        done = Notification.query.filter_by(recipient_id=sales.user_id, title="Billing Completed").one()
        assert done.type == "success"

    def test_finance_initiation_notifies_salesperson(self, drive_project, finance, sales):
        pid = drive_project("Completed")
        billing_service.initiate_billing(finance, pid)
        note = Notification.query.filter_by(title="Billing Initiated").one()
        assert note.recipient_id == sales.user_id

    def test_initiate_requires_completed(self, drive_project, admin):
        pid = drive_project("Soak Period")
        with pytest.raises(ConflictError):
            billing_service.initiate_billing(admin, pid)

    def test_initiate_twice_conflicts(self, drive_project, admin):
        pid = drive_project("Completed")
        billing_service.initiate_billing(admin, pid)
        with pytest.raises(ConflictError):
            billing_service.initiate_billing(admin, pid)

    def test_complete_requires_initiated(self, drive_project, finance):
        pid = drive_project("Completed")
        with pytest.raises(ConflictError):
            billing_service.complete_billing(finance, pid, {})
        assert db.session.get(Project, pid).billing_status == "Pending"

    def test_billing_only_on_completed_projects(self, drive_project):
        drive_project("Installation Pending", name="Mid")
        drive_project("Completed", name="Done")
        for project in Project.query.all():
            if project.status != "Completed":
                assert project.billing_status in (None, "Not Ready")


class TestPromoteCompletedBilling:
    def _complete_without_billing_status(self, pid, billing_status=None):
        project = db.session.get(Project, pid)
        project.billing_status = billing_status
        db.session.commit()

    def test_sweep_is_idempotent(self, drive_project):
        pid = drive_project("Completed", name="Legacy")
        other = drive_project("Completed", name="Legacy 2")
        self._complete_without_billing_status(pid)
        self._complete_without_billing_status(other, "Not Ready")

        assert sorted(billing_service.promote_completed_billing()) == sorted([pid, other])
        assert db.session.get(Project, pid).billing_status == "Pending"
        assert billing_service.promote_completed_billing() == []

    def test_sweep_skips_projects_without_acceptance(self, drive_project):
        pid = drive_project("Soak Period")
        project = db.session.get(Project, pid)
        project.status = "Completed"
        db.session.commit()

        assert billing_service.promote_completed_billing() == []
        assert db.session.get(Project, pid).billing_status is None

    def test_sweep_leaves_billed_projects(self, drive_project, finance):
        pid = drive_project("Completed")
        billing_service.initiate_billing(finance, pid)
        billing_service.complete_billing(finance, pid, {})
        assert billing_service.promote_completed_billing() == []
        assert db.session.get(Project, pid).billing_status == "Billed"
        assert db.session.get(Project, pid).acceptance_form.acceptance_date == date(2026, 3, 1)
