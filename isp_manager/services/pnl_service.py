"""
P&L Approval Cycle - Service Layer.

    Pending ──approve──▶ Approved            (project: Approved)
       │
       └──reject──▶ Rejected ──review──▶ Under Review ──BOQ revised──▶ Pending
                   (P&L Rejected)        (P&L Under Review)            (Pending Approval)

The PnL and its Project always change in the same commit, so no reader
can observe an approved PnL on a project still pending approval.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from isp_manager.core.exceptions import ConflictError, NotFoundError, ValidationError
from isp_manager.models import db
from isp_manager.models.auth import Role
from isp_manager.models.costing import MAX_AMOUNT, Pnl, PnlApprovalStatus
from isp_manager.models.project import Project, ProjectStatus
from isp_manager.services.authorization import Action, AuthContext, check_permission
from isp_manager.services.notification import (
    dispatch_after_commit,
    pnl_notification,
    recipients_with_role,
)
from isp_manager.services.unit_of_work import lock_project, lock_row, unit_of_work
from isp_manager.utils.helpers import optional_text, require_number, require_text

logger = logging.getLogger(__name__)


def _lock_pnl(pnl_id: int) -> tuple[Pnl, Project]:
    """Lock the owning project first, then the PnL row, and return both."""
    project_id = db.session.execute(
        select(Pnl.project_id).where(Pnl.id == pnl_id)
    ).scalar_one_or_none()
    if project_id is None:
        raise NotFoundError(resource="P&L", resource_id=pnl_id)
    project = lock_project(project_id)
    pnl = lock_row(Pnl, pnl_id, label="P&L")
    return pnl, project


def _require_status(pnl: Pnl, expected: PnlApprovalStatus, verb: str) -> None:
    if pnl.approval_status != expected.value:
        raise ConflictError(
            f"Cannot {verb} a P&L with status '{pnl.approval_status}'.",
            details={"approval_status": pnl.approval_status, "expected": expected.value},
        )


def _result(pnl: Pnl, project: Project) -> dict:
    return {"pnl": pnl.to_dict(), "project": project.to_summary()}


# ── Queries ──────────────────────────────────────────────────────────────────


def list_pending_pnls(caller) -> list[dict]:
    """P&Ls awaiting an admin decision, oldest first."""
    check_permission(caller, Action.LIST_PENDING_PNLS)
    pnls = (
        Pnl.query.filter_by(approval_status=PnlApprovalStatus.PENDING.value)
        .order_by(Pnl.date_prepared.asc(), Pnl.id.asc())
        .all()
    )
    items = []
    for pnl in pnls:
        d = pnl.to_dict()
        d["project"] = pnl.project.to_summary() if pnl.project else None
        items.append(d)
    return items


# ── Decisions ────────────────────────────────────────────────────────────────


def approve_pnl(caller, pnl_id: int, data: dict | None = None) -> dict:
    comments = optional_text(data or {}, "admin_comments")

    with unit_of_work():
        pnl, project = _lock_pnl(pnl_id)
        check_permission(caller, Action.APPROVE_PNL)
        _require_status(pnl, PnlApprovalStatus.PENDING, "approve")

        pnl.approval_status = PnlApprovalStatus.APPROVED.value
        pnl.approver_id = caller.user_id
        pnl.approval_date = datetime.now(timezone.utc)
        if comments is not None:
            pnl.admin_comments = comments
        project.status = ProjectStatus.APPROVED.value

        pending = [pnl_notification(pnl.submitted_by_id, project, "Approved", "success", caller.user_id)]
        logger.info(
            "P&L approved pnl_id=%s project_id=%s", pnl.id, project.id,
            extra={"project_id": project.id, "event_type": "pnl_approved"},
        )

    dispatch_after_commit(pending)
    return _result(pnl, project)


def reject_pnl(caller, pnl_id: int, data: dict) -> dict:
    comments = require_text(data or {}, "admin_comments", "Rejection comments")

    with unit_of_work():
        pnl, project = _lock_pnl(pnl_id)
        check_permission(caller, Action.REJECT_PNL)
        _require_status(pnl, PnlApprovalStatus.PENDING, "reject")

        pnl.approval_status = PnlApprovalStatus.REJECTED.value
        pnl.approver_id = caller.user_id
        pnl.approval_date = datetime.now(timezone.utc)
        pnl.admin_comments = comments
        project.status = ProjectStatus.PNL_REJECTED.value

        pending = [pnl_notification(pnl.submitted_by_id, project, "Rejected", "error", caller.user_id)]
        logger.info(
            "P&L rejected pnl_id=%s project_id=%s", pnl.id, project.id,
            extra={"project_id": project.id, "event_type": "pnl_rejected"},
        )

    dispatch_after_commit(pending)
    return _result(pnl, project)


def review_pnl(caller, pnl_id: int, data: dict | None = None) -> dict:
    """Send a rejected P&L back for review. Prior comments survive unless new ones are given."""
    comments = optional_text(data or {}, "admin_comments")

    with unit_of_work():
        pnl, project = _lock_pnl(pnl_id)
        check_permission(
            caller, Action.REVIEW_PNL, AuthContext(is_pnl_submitter=pnl.submitted_by_id == caller.user_id),
        )
        _require_status(pnl, PnlApprovalStatus.REJECTED, "review")

        pnl.approval_status = PnlApprovalStatus.UNDER_REVIEW.value
        if comments is not None:
            pnl.admin_comments = comments
        project.status = ProjectStatus.PNL_UNDER_REVIEW.value

        pending = [
            pnl_notification(admin_id, project, "Sent for Review", "warning", caller.user_id)
            for admin_id in recipients_with_role(Role.ADMIN.value)
            if admin_id != caller.user_id
        ]
        logger.info(
            "P&L under review pnl_id=%s project_id=%s", pnl.id, project.id,
            extra={"project_id": project.id, "event_type": "pnl_review_requested"},
        )

    dispatch_after_commit(pending)
    return _result(pnl, project)


def update_boq_for_review(caller, pnl_id: int, data: dict) -> dict:
    """Revise the BOQ behind an under-review P&L and resubmit it for approval.

    The PnL is recalculated from the new cost and reset to Pending with
    approver and approval date cleared, whatever its prior comments say.
    """
    total_cost = require_number(data, "total_cost", minimum=0, maximum=MAX_AMOUNT, exclusive=True)
    notes = optional_text(data, "notes")

    with unit_of_work():
        pnl, project = _lock_pnl(pnl_id)
        check_permission(caller, Action.UPDATE_BOQ_FOR_REVIEW)
        _require_status(pnl, PnlApprovalStatus.UNDER_REVIEW, "revise the BOQ of")
        boq = project.boq
        if boq is None:
            raise ValidationError("The project has no BOQ to update.", details={"boq": "missing"})

        boq.total_cost = total_cost
        if notes is not None:
            boq.notes = notes
        boq.prepared_by_id = caller.user_id
        boq.date_prepared = datetime.now(timezone.utc)

        pnl.recalculate(total_cost)
        pnl.approval_status = PnlApprovalStatus.PENDING.value
        pnl.approver_id = None
        pnl.approval_date = None
        project.status = ProjectStatus.PENDING_APPROVAL.value

        pending = [
            pnl_notification(admin_id, project, "Resubmitted for Approval", "info", caller.user_id)
            for admin_id in recipients_with_role(Role.ADMIN.value)
            if admin_id != caller.user_id
        ]
        if pnl.submitted_by_id != caller.user_id:
            pending.append(pnl_notification(pnl.submitted_by_id, project, "Recalculated", "info", caller.user_id))
        logger.info(
            "BOQ revised for review pnl_id=%s project_id=%s cost=%s", pnl.id, project.id, total_cost,
            extra={"project_id": project.id, "event_type": "boq_revised"},
        )

    dispatch_after_commit(pending)
    result = _result(pnl, project)
    result["boq"] = boq.to_dict()
    return result
