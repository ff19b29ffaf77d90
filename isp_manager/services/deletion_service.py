"""
Project Deletion - Service Layer.

An ADMIN deletes a project outright. The owning salesperson files a
DeletionRequest instead, which an ADMIN approves (the project, its 1:1
children, its notifications and the request itself are removed in one
unit of work) or rejects (the request is kept as a record).
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from isp_manager.core.exceptions import ConflictError, NotFoundError
from isp_manager.models import db
from isp_manager.models.auth import Role
from isp_manager.models.deletion import DeletionRequest, DeletionRequestStatus
from isp_manager.models.project import Project
from isp_manager.services.authorization import Action, AuthContext, check_permission
from isp_manager.services.notification import (
    NotificationService,
    PendingNotification,
    dispatch_after_commit,
    project_link,
    recipients_with_role,
)
from isp_manager.services.unit_of_work import lock_project, lock_row, unit_of_work
from isp_manager.utils.helpers import require_text

logger = logging.getLogger(__name__)


def _purge_project(project: Project) -> None:
    """Delete a project with every row that references it. Caller commits.

    CRD, BOQ, PnL, AcceptanceForm and DeletionRequest go through the ORM
    cascade; notifications carry a plain project_id and are removed here.
    """
    removed = NotificationService.purge_for_project(project.id)
    db.session.delete(project)
    db.session.flush()
    logger.info(
        "Project purged id=%s notifications_removed=%s", project.id, removed,
        extra={"project_id": project.id, "event_type": "project_deleted"},
    )


def _lock_request(request_id: int) -> tuple[DeletionRequest, Project]:
    project_id = db.session.execute(
        select(DeletionRequest.project_id).where(DeletionRequest.id == request_id)
    ).scalar_one_or_none()
    if project_id is None:
        raise NotFoundError(resource="Deletion request", resource_id=request_id)
    project = lock_project(project_id)
    req = lock_row(DeletionRequest, request_id, label="Deletion request")
    return req, project


# ── Queries ──────────────────────────────────────────────────────────────────


def list_deletion_requests(caller, status: str | None = None) -> list[dict]:
    check_permission(caller, Action.LIST_DELETION_REQUESTS)
    q = DeletionRequest.query
    if status:
        q = q.filter(DeletionRequest.status == status)
    requests = q.order_by(DeletionRequest.request_date.desc(), DeletionRequest.id.desc()).all()
    return [r.to_dict(include_project=True) for r in requests]


# ── Transitions ──────────────────────────────────────────────────────────────


def request_or_execute_deletion(caller, project_id: int, data: dict) -> dict:
    """ADMIN: delete now. Owning salesperson: file a Pending request.

    Returns:
        ``{"deleted": True, "project_id": ...}`` for an immediate delete,
        otherwise ``{"deleted": False, "deletion_request": {...}}``.
    """
    reason = require_text(data or {}, "reason", "Deletion reason")

    with unit_of_work() as session:
        project = lock_project(project_id)
        check_permission(
            caller, Action.REQUEST_DELETION,
            AuthContext(is_sales_owner=project.sales_person_id == caller.user_id),
        )
        if project.deletion_request is not None:
            raise ConflictError(
                "A deletion request already exists for this project.",
                details={"status": project.deletion_request.status},
            )

        if caller.role == Role.ADMIN.value:
            logger.info("Direct deletion by admin user_id=%s reason=%s", caller.user_id, reason)
            _purge_project(project)
            return {"deleted": True, "project_id": project_id}

        req = DeletionRequest(
            project_id=project.id,
            reason=reason,
            requested_by_id=caller.user_id,
            status=DeletionRequestStatus.PENDING.value,
        )
        session.add(req)
        session.flush()

        requester = caller.name or caller.email or f"user {caller.user_id}"
        pending = [
            PendingNotification(
                recipient_id=admin_id,
                title="Deletion Request Submitted",
                message=(
                    f'A deletion request has been submitted for project "{project.project_name}" '
                    f"by {requester}."
                ),
                type="info",
                creator_id=caller.user_id,
                link="/deletion-requests",
                project_id=project.id,
            )
            for admin_id in recipients_with_role(Role.ADMIN.value)
        ]
        logger.info(
            "Deletion requested project_id=%s request_id=%s", project.id, req.id,
            extra={"project_id": project.id, "event_type": "deletion_requested"},
        )

    dispatch_after_commit(pending)
    return {"deleted": False, "deletion_request": req.to_dict(include_project=True)}


def approve_deletion_request(caller, request_id: int, data: dict | None = None) -> dict:
    """Approve a pending request and purge the project in the same unit of work."""
    comments = (data or {}).get("comments") or None

    with unit_of_work():
        req, project = _lock_request(request_id)
        check_permission(caller, Action.APPROVE_DELETION)
        if req.status != DeletionRequestStatus.PENDING.value:
            raise ConflictError(f"Deletion request has already been {req.status.lower()}.")

        req.status = DeletionRequestStatus.APPROVED.value
        req.responded_by_id = caller.user_id
        req.response_date = datetime.now(timezone.utc)
        req.response_comments = comments
        db.session.flush()
        snapshot = req.to_dict(include_project=True)

        # No link or project_id: the project is gone once this commits.
        pending = [PendingNotification(
            recipient_id=req.requested_by_id,
            title="Deletion Request Approved",
            message=f'Your request to delete project "{project.project_name}" has been approved.',
            type="success",
            creator_id=caller.user_id,
        )]
        _purge_project(project)

    dispatch_after_commit(pending)
    return {"deleted": True, "project_id": snapshot["project_id"], "deletion_request": snapshot}


def reject_deletion_request(caller, request_id: int, data: dict) -> dict:
    comments = require_text(data or {}, "comments", "Rejection comments")

    with unit_of_work():
        req, project = _lock_request(request_id)
        check_permission(caller, Action.REJECT_DELETION)
        if req.status != DeletionRequestStatus.PENDING.value:
            raise ConflictError(f"Deletion request has already been {req.status.lower()}.")

        req.status = DeletionRequestStatus.REJECTED.value
        req.responded_by_id = caller.user_id
        req.response_date = datetime.now(timezone.utc)
        req.response_comments = comments

        pending = [PendingNotification(
            recipient_id=req.requested_by_id,
            title="Deletion Request Rejected",
            message=(
                f'Your request to delete project "{project.project_name}" has been rejected. '
                f"Reason: {comments}"
            ),
            type="error",
            creator_id=caller.user_id,
            link=project_link(project.id),
            project_id=project.id,
        )]
        logger.info(
            "Deletion request rejected request_id=%s project_id=%s", req.id, project.id,
            extra={"project_id": project.id, "event_type": "deletion_rejected"},
        )

    dispatch_after_commit(pending)
    return req.to_dict(include_project=True)
