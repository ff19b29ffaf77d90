"""
ISP Project Manager
Notification Service.

Central service for creating and querying in-app notifications. Workflow
transitions never call ``notify`` inside their unit of work: they collect
``PendingNotification`` values and hand them to ``dispatch_after_commit``
once the state change is durable. A failing notification is logged and
dropped; it never undoes the transition that produced it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from flask import current_app

from isp_manager.core.exceptions import ForbiddenError, NotFoundError
from isp_manager.models import db
from isp_manager.models.auth import User
from isp_manager.models.notification import Notification
from isp_manager.services.email_service import EmailService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    """A notification decided inside a transition, delivered after commit."""

    recipient_id: int
    title: str
    message: str
    type: str = "info"
    creator_id: int | None = None
    link: str | None = None
    project_id: int | None = None


def project_link(project_id):
    return f"/projects/{project_id}"


def project_notification(recipient_id, project, action, type="info", creator_id=None):
    """``Project {action}`` notice linking to the project page."""
    return PendingNotification(
        recipient_id=recipient_id,
        title=f"Project {action}",
        message=f'Project "{project.project_name}" has been {action}.',
        type=type,
        creator_id=creator_id,
        link=project_link(project.id),
        project_id=project.id,
    )


def pnl_notification(recipient_id, project, action, type="info", creator_id=None):
    """``P&L {action}`` notice linking to the project page."""
    return PendingNotification(
        recipient_id=recipient_id,
        title=f"P&L {action}",
        message=f'P&L for project "{project.project_name}" has been {action}.',
        type=type,
        creator_id=creator_id,
        link=project_link(project.id),
        project_id=project.id,
    )


def recipients_with_role(role):
    """IDs of active users holding ``role``."""
    rows = db.session.query(User.id).filter(User.role == role, User.is_active.is_(True)).all()
    return [r.id for r in rows]


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def notify(*, recipient_id, title, message, type="info", creator_id=None,
               link=None, project_id=None):
        """
        Create a single notification record and optionally email it.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            recipient_id=recipient_id,
            creator_id=creator_id,
            title=title,
            message=message,
            type=type,
            link=link,
            project_id=project_id,
        )
        db.session.add(notif)
        db.session.commit()

        if current_app.config.get("ENABLE_EMAIL_NOTIFICATIONS"):
            recipient = db.session.get(User, recipient_id)
            if recipient is not None and recipient.email:
                EmailService.send_notification_email(
                    to_email=recipient.email, title=title, message=message, type=type, link=link,
                )
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient_id, unread_only=False, limit=50, offset=0):
        """Retrieve notifications for a recipient, newest first."""
        q = Notification.query.filter_by(recipient_id=recipient_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(recipient_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(recipient_id=recipient_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, recipient_id):
        """Mark a single notification as read. Only its recipient may do so."""
        notif = db.session.get(Notification, notification_id)
        if notif is None:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        if notif.recipient_id != recipient_id:
            raise ForbiddenError(
                action="mark_notification_read",
                message="Not authorized to update this notification",
            )
        if not notif.is_read:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient_id):
        """Mark all notifications for a recipient as read."""
        now = datetime.now(timezone.utc)
        count = (
            Notification.query.filter_by(recipient_id=recipient_id, is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        return count

    @staticmethod
    def purge_for_project(project_id):
        """Delete every notification tied to a project. Caller commits."""
        return (
            Notification.query.filter_by(project_id=project_id)
            .delete(synchronize_session="fetch")
        )


def dispatch_after_commit(notifications):
    """Deliver notifications collected by a committed transition.

    Each notification is independent: a failure is logged, its partial
    write is rolled back, and the remaining ones are still attempted.

    Returns:
        Number of notifications delivered.
    """
    delivered = 0
    for pending in notifications:
        try:
            NotificationService.notify(
                recipient_id=pending.recipient_id,
                title=pending.title,
                message=pending.message,
                type=pending.type,
                creator_id=pending.creator_id,
                link=pending.link,
                project_id=pending.project_id,
            )
            delivered += 1
        except Exception:
            db.session.rollback()
            logger.exception(
                "Notification delivery failed",
                extra={"recipient_id": pending.recipient_id, "project_id": pending.project_id},
            )
    return delivered
