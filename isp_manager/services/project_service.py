"""
Project Workflow - Service Layer.

Business logic for the main line of the project lifecycle:
    - CreateProject:          Project + CRD in one unit of work
    - CreateBOQ / CreatePnL:  costing entries and their status moves
    - InitiateInstallation:   Approved -> Installation Pending
    - AssignProjectManager:   one-time PM assignment during installation
    - UpdateProjectStatus:    manual moves along the STATUS_TRANSITIONS map
    - SubmitAcceptanceForm:   Soak Period -> Completed, billing Pending

Every transition validates its payload, then inside one unit of work
locks the project, checks permission, checks state, mutates, and commits.
Notifications go out only after the commit.
"""

import logging

from isp_manager.core.exceptions import ConflictError, NotFoundError, ValidationError
from isp_manager.models import db
from isp_manager.models.acceptance import AcceptanceForm
from isp_manager.models.auth import User
from isp_manager.models.costing import (
    MAX_AMOUNT,
    MAX_CONTRACT_TERM_MONTHS,
    Boq,
    Pnl,
    PnlApprovalStatus,
    compute_pnl_figures,
)
from isp_manager.models.project import (
    BOQ_ENTRY_STATUSES,
    INSTALLATION_PHASE_STATUSES,
    VALID_PROJECT_STATUSES,
    BillingStatus,
    Crd,
    Project,
    ProjectStatus,
    next_statuses,
    validate_status_transition,
)
from isp_manager.services.authorization import Action, AuthContext, check_permission
from isp_manager.services.notification import dispatch_after_commit, project_notification
from isp_manager.services.unit_of_work import lock_project, unit_of_work
from isp_manager.utils.helpers import (
    MAX_ID,
    optional_bool,
    optional_date,
    optional_text,
    require_date,
    require_number,
    require_text,
)

logger = logging.getLogger(__name__)


def _owner_context(project, caller):
    return AuthContext(is_sales_owner=project.sales_person_id == caller.user_id)


# ── Queries ──────────────────────────────────────────────────────────────────


def list_projects(status: str | None = None, sales_person_id: int | None = None) -> list[dict]:
    """All projects, most recently updated first."""
    q = Project.query
    if status:
        q = q.filter(Project.status == status)
    if sales_person_id:
        q = q.filter(Project.sales_person_id == sales_person_id)
    return [p.to_summary() for p in q.order_by(Project.updated_at.desc(), Project.id.desc()).all()]


def get_project(project_id: int) -> dict:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    d = project.to_dict()
    d["allowed_next_statuses"] = next_statuses(project.status)
    return d


# ── CreateProject ────────────────────────────────────────────────────────────


def create_project(caller, data: dict) -> dict:
    """Create a Project and its CRD atomically; status starts at ``CRD Submitted``."""
    project_name = require_text(data, "project_name", "Project name")
    customer_name = require_text(data, "customer_name", "Customer name")
    crd_data = data.get("crd") or {}
    if not isinstance(crd_data, dict):
        raise ValidationError("crd must be an object", details={"crd": "invalid type"})
    project_type = require_text(crd_data, "project_type", "CRD project type")
    billing_trigger = require_text(crd_data, "billing_trigger", "CRD billing trigger")
    service_type = require_text(crd_data, "service_type", "CRD service type")
    target_delivery_date = optional_date(data, "target_delivery_date")

    check_permission(caller, Action.CREATE_PROJECT)

    with unit_of_work() as session:
        if Project.query.filter_by(project_name=project_name).first() is not None:
            raise ConflictError.duplicate("Project", "project_name", project_name)

        project = Project(
            project_name=project_name,
            customer_name=customer_name,
            status=ProjectStatus.CRD_SUBMITTED.value,
            site_a_address=optional_text(data, "site_a_address"),
            site_b_address=optional_text(data, "site_b_address"),
            target_delivery_date=target_delivery_date,
            sales_person_id=caller.user_id,
        )
        project.crd = Crd(
            project_type=project_type,
            billing_trigger=billing_trigger,
            service_type=service_type,
            customer_contact=optional_text(crd_data, "customer_contact"),
            customer_phone=optional_text(crd_data, "customer_phone"),
            customer_email=optional_text(crd_data, "customer_email"),
            bandwidth=optional_text(crd_data, "bandwidth"),
            sla_requirements=optional_text(crd_data, "sla_requirements"),
            interface_type=optional_text(crd_data, "interface_type"),
            redundancy=optional_bool(crd_data, "redundancy"),
            ip_requirements=optional_text(crd_data, "ip_requirements"),
            notes=optional_text(crd_data, "notes"),
        )
        session.add(project)
        session.flush()
        logger.info(
            "Project created id=%s name=%s", project.id, project.project_name,
            extra={"project_id": project.id, "event_type": "project_created"},
        )

    return project.to_dict()


# ── Costing ──────────────────────────────────────────────────────────────────


def create_boq(caller, project_id: int, data: dict) -> dict:
    """Attach the BOQ; status moves to ``BOQ Ready``."""
    total_cost = require_number(data, "total_cost", minimum=0, maximum=MAX_AMOUNT)
    notes = optional_text(data, "notes")

    with unit_of_work() as session:
        project = lock_project(project_id)
        check_permission(caller, Action.CREATE_BOQ)
        if project.boq is not None:
            raise ConflictError("A BOQ already exists for this project.")
        if project.status not in BOQ_ENTRY_STATUSES:
            raise ConflictError(f"Cannot create a BOQ while project status is '{project.status}'.")

        boq = Boq(project_id=project.id, total_cost=total_cost, notes=notes, prepared_by_id=caller.user_id)
        session.add(boq)
        project.status = ProjectStatus.BOQ_READY.value
        session.flush()
        logger.info(
            "BOQ created project_id=%s cost=%s", project.id, total_cost,
            extra={"project_id": project.id, "event_type": "boq_created"},
        )

    return {"boq": boq.to_dict(), "project": project.to_summary()}


def create_pnl(caller, project_id: int, data: dict) -> dict:
    """Submit the P&L against a snapshot of the BOQ cost; status moves to ``Pending Approval``."""
    one_time_revenue = require_number(data, "one_time_revenue", minimum=0, maximum=MAX_AMOUNT)
    recurring_revenue = require_number(data, "recurring_revenue", minimum=0, maximum=MAX_AMOUNT)
    contract_term_months = require_number(
        data, "contract_term_months", minimum=0, maximum=MAX_CONTRACT_TERM_MONTHS, exclusive=True, integer=True,
    )

    with unit_of_work() as session:
        project = lock_project(project_id)
        check_permission(caller, Action.CREATE_PNL)
        if project.boq is None:
            raise ValidationError("A BOQ must exist before a P&L can be created.", details={"boq": "missing"})
        if project.pnl is not None:
            raise ConflictError("A P&L already exists for this project.")
        if project.status != ProjectStatus.BOQ_READY.value:
            raise ConflictError(f"Cannot create a P&L while project status is '{project.status}'.")

        boq_cost = project.boq.total_cost
        _, gross_profit, gross_margin = compute_pnl_figures(
            boq_cost, one_time_revenue, recurring_revenue, contract_term_months,
        )
        pnl = Pnl(
            project_id=project.id,
            submitted_by_id=caller.user_id,
            boq_cost=boq_cost,
            one_time_revenue=one_time_revenue,
            recurring_revenue=recurring_revenue,
            contract_term_months=contract_term_months,
            gross_profit=gross_profit,
            gross_margin=gross_margin,
            approval_status=PnlApprovalStatus.PENDING.value,
        )
        session.add(pnl)
        project.status = ProjectStatus.PENDING_APPROVAL.value
        session.flush()
        logger.info(
            "P&L submitted project_id=%s margin=%.2f", project.id, gross_margin,
            extra={"project_id": project.id, "event_type": "pnl_created"},
        )

    return {"pnl": pnl.to_dict(), "project": project.to_summary()}


# ── Installation ─────────────────────────────────────────────────────────────


def initiate_installation(caller, project_id: int) -> dict:
    with unit_of_work():
        project = lock_project(project_id)
        check_permission(caller, Action.INITIATE_INSTALLATION, _owner_context(project, caller))
        if project.status != ProjectStatus.APPROVED.value:
            raise ConflictError(
                f"Installation can only be initiated for Approved projects (current: '{project.status}')."
            )
        project.status = ProjectStatus.INSTALLATION_PENDING.value
        logger.info(
            "Installation initiated project_id=%s", project.id,
            extra={"project_id": project.id, "event_type": "installation_initiated"},
        )

    return project.to_dict(include_children=False)


def assign_project_manager(caller, project_id: int, data: dict) -> dict:
    """Assign the project manager once, during the installation phase."""
    pm_id = require_number(data, "project_manager_id", minimum=1, maximum=MAX_ID, integer=True)

    with unit_of_work():
        project = lock_project(project_id)
        check_permission(caller, Action.ASSIGN_PROJECT_MANAGER)
        if project.project_manager_id is not None:
            raise ConflictError("A project manager is already assigned to this project.")
        if project.status not in INSTALLATION_PHASE_STATUSES:
            raise ConflictError(f"Cannot assign a project manager while status is '{project.status}'.")
        manager = db.session.get(User, pm_id)
        if manager is None:
            raise ValidationError(
                f"User id={pm_id} does not exist.", details={"project_manager_id": "unknown user"},
            )

        project.project_manager_id = manager.id
        pending = [
            project_notification(manager.id, project, "Assigned to You", "info", caller.user_id),
        ]
        logger.info(
            "Project manager assigned project_id=%s pm_id=%s", project.id, manager.id,
            extra={"project_id": project.id, "event_type": "pm_assigned"},
        )

    dispatch_after_commit(pending)
    return project.to_dict(include_children=False)


def update_project_status(caller, project_id: int, data: dict) -> dict:
    """Manual status move, restricted to the STATUS_TRANSITIONS map."""
    new_status = require_text(data, "status", "Status")
    if new_status not in VALID_PROJECT_STATUSES:
        raise ValidationError(f"Unknown project status '{new_status}'.", details={"status": "invalid"})

    with unit_of_work():
        project = lock_project(project_id)
        check_permission(caller, Action.UPDATE_PROJECT_STATUS)
        old_status = project.status
        if not validate_status_transition(old_status, new_status):
            raise ConflictError(
                f"Invalid status transition: '{old_status}' -> '{new_status}'",
                details={"allowed": next_statuses(old_status)},
            )

        project.status = new_status
        action = f"Status Updated to '{new_status}'"
        pending = []
        if project.project_manager_id:
            pending.append(project_notification(project.project_manager_id, project, action, "info", caller.user_id))
        pending.append(project_notification(project.sales_person_id, project, action, "info", caller.user_id))
        logger.info(
            "Project status %s -> %s project_id=%s", old_status, new_status, project.id,
            extra={"project_id": project.id, "event_type": "status_updated"},
        )

    dispatch_after_commit(pending)
    return project.to_dict(include_children=False)


# ── Acceptance ───────────────────────────────────────────────────────────────


def submit_acceptance_form(caller, project_id: int, data: dict) -> dict:
    """Log customer acceptance; completes the project and queues it for billing."""
    acceptance_date = require_date(data, "acceptance_date")
    billing_start_date = require_date(data, "billing_start_date")
    customer_signature = require_text(data, "customer_signature", "Customer signature")
    commissioned_date = optional_date(data, "commissioned_date")

    with unit_of_work() as session:
        project = lock_project(project_id)
        check_permission(caller, Action.SUBMIT_ACCEPTANCE_FORM)
        if project.acceptance_form is not None:
            raise ConflictError("An acceptance form already exists for this project.")
        if project.status != ProjectStatus.SOAK_PERIOD.value:
            raise ConflictError(
                f"Acceptance can only be logged during the Soak Period (current: '{project.status}')."
            )

        form = AcceptanceForm(
            project_id=project.id,
            acceptance_date=acceptance_date,
            billing_start_date=billing_start_date,
            customer_signature=customer_signature,
            logged_by_id=caller.user_id,
            service_id=optional_text(data, "service_id"),
            commissioned_date=commissioned_date,
            signed_by_name=optional_text(data, "signed_by_name"),
            signed_by_title=optional_text(data, "signed_by_title"),
            isp_representative=optional_text(data, "isp_representative"),
            notes=optional_text(data, "notes"),
        )
        session.add(form)
        project.status = ProjectStatus.COMPLETED.value
        project.billing_status = BillingStatus.PENDING.value
        session.flush()

        pending = [
            project_notification(project.sales_person_id, project, "Completed", "success", caller.user_id),
            project_notification(project.sales_person_id, project, "Ready for Billing", "info", caller.user_id),
        ]
        if project.project_manager_id:
            pending.append(
                project_notification(project.project_manager_id, project, "Completed", "success", caller.user_id)
            )
        logger.info(
            "Acceptance logged project_id=%s billing_start=%s", project.id, billing_start_date,
            extra={"project_id": project.id, "event_type": "acceptance_submitted"},
        )

    dispatch_after_commit(pending)
    return {"acceptance_form": form.to_dict(), "project": project.to_dict(include_children=False)}
