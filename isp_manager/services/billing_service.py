"""
Billing - Service Layer.

Billing is a sub-state of a Completed project:

    (null | Not Ready) ──acceptance──▶ Pending ──initiate──▶ Initiated ──complete──▶ Billed

``promote_completed_billing`` repairs projects that reached Completed with
no billing status. It is idempotent and runs both as the
``flask promote-billing`` command and as a scheduled job.
"""

import logging

from sqlalchemy import or_, select

from isp_manager.core.exceptions import ConflictError
from isp_manager.models import db
from isp_manager.models.acceptance import AcceptanceForm
from isp_manager.models.auth import Role
from isp_manager.models.project import BillingStatus, Project, ProjectStatus
from isp_manager.services.authorization import Action, AuthContext, check_permission
from isp_manager.services.notification import (
    PendingNotification,
    dispatch_after_commit,
    project_link,
    recipients_with_role,
)
from isp_manager.services.unit_of_work import lock_project, unit_of_work
from isp_manager.utils.helpers import optional_text

logger = logging.getLogger(__name__)

INITIABLE_BILLING_STATUSES = frozenset({None, BillingStatus.NOT_READY.value, BillingStatus.PENDING.value})


def _billing_summary(project: Project) -> dict:
    form = project.acceptance_form
    return {
        "id": project.id,
        "project_name": project.project_name,
        "status": project.status,
        "billing_status": project.billing_status,
        "billing_start_date": form.billing_start_date.isoformat() if form else None,
    }


def initiate_billing(caller, project_id: int) -> dict:
    """Hand a completed, accepted project to finance."""
    with unit_of_work():
        project = lock_project(project_id)
        is_owner = project.sales_person_id == caller.user_id
        check_permission(caller, Action.INITIATE_BILLING, AuthContext(is_sales_owner=is_owner))
        if project.status != ProjectStatus.COMPLETED.value:
            raise ConflictError("Only completed projects can be sent for billing.")
        form = project.acceptance_form
        if form is None:
            raise ConflictError("Project must have an acceptance form before initiating billing.")
        if project.billing_status not in INITIABLE_BILLING_STATUSES:
            raise ConflictError(f"Billing is already '{project.billing_status}' for this project.")

        project.billing_status = BillingStatus.INITIATED.value

        link = project_link(project.id)
        pending = [
            PendingNotification(
                recipient_id=finance_id,
                title="Billing Request",
                message=(
                    f'Project "{project.project_name}" is ready for billing. '
                    f"Billing start date: {form.billing_start_date.isoformat()}"
                ),
                type="info",
                creator_id=caller.user_id,
                link=link,
                project_id=project.id,
            )
            for finance_id in recipients_with_role(Role.FINANCE.value)
        ]
        if not is_owner:
            pending.append(PendingNotification(
                recipient_id=project.sales_person_id,
                title="Billing Initiated",
                message=f'Billing has been initiated for project "{project.project_name}".',
                type="info",
                creator_id=caller.user_id,
                link=link,
                project_id=project.id,
            ))
        logger.info(
            "Billing initiated project_id=%s", project.id,
            extra={"project_id": project.id, "event_type": "billing_initiated"},
        )

    dispatch_after_commit(pending)
    return _billing_summary(project)


def complete_billing(caller, project_id: int, data: dict | None = None) -> dict:
    billing_reference = optional_text(data or {}, "billing_reference")

    with unit_of_work():
        project = lock_project(project_id)
        check_permission(caller, Action.COMPLETE_BILLING)
        if project.billing_status != BillingStatus.INITIATED.value:
            raise ConflictError("Billing must be initiated before it can be marked as completed.")

        project.billing_status = BillingStatus.BILLED.value
        pending = [PendingNotification(
            recipient_id=project.sales_person_id,
            title="Billing Completed",
            message=f'Billing has been completed for project "{project.project_name}".',
            type="success",
            creator_id=caller.user_id,
            link=project_link(project.id),
            project_id=project.id,
        )]
        logger.info(
            "Billing completed project_id=%s reference=%s", project.id, billing_reference,
            extra={"project_id": project.id, "event_type": "billing_completed"},
        )

    dispatch_after_commit(pending)
    return _billing_summary(project)


def promote_completed_billing() -> list[int]:
    """Set billing Pending on Completed projects that have an acceptance form but no billing status.

    Returns:
        IDs of the projects that were promoted. Running it again returns [].
    """
    stmt = (
        select(Project)
        .join(AcceptanceForm, AcceptanceForm.project_id == Project.id)
        .where(Project.status == ProjectStatus.COMPLETED.value)
        .where(or_(Project.billing_status.is_(None),
                   Project.billing_status == BillingStatus.NOT_READY.value))
    )
    with unit_of_work() as session:
        projects = session.execute(stmt).scalars().all()
        for project in projects:
            project.billing_status = BillingStatus.PENDING.value
            logger.info(
                "Billing status promoted to Pending project_id=%s", project.id,
                extra={"project_id": project.id, "event_type": "billing_promoted"},
            )
        promoted = [p.id for p in projects]

    skipped = db.session.execute(
        select(Project.id)
        .outerjoin(AcceptanceForm, AcceptanceForm.project_id == Project.id)
        .where(Project.status == ProjectStatus.COMPLETED.value)
        .where(AcceptanceForm.id.is_(None))
    ).scalars().all()
    if skipped:
        logger.warning("Completed projects without acceptance form skipped: %s", list(skipped))
    return promoted
