"""
ISP Project Manager
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking

Notifications are a side effect of workflow transitions; the workflow
never reads them. project_id is a plain column so that a notification
row never blocks a project delete; project purges remove them explicitly.
"""

from datetime import datetime, timezone

from isp_manager.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {"info", "success", "warning", "error"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    type = db.Column(db.String(20), default="info")
    link = db.Column(db.String(500), nullable=True)
    project_id = db.Column(db.Integer, nullable=True, index=True)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    recipient = db.relationship("User", foreign_keys=[recipient_id])
    creator = db.relationship("User", foreign_keys=[creator_id])

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "creator": self.creator.to_summary() if self.creator else None,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "link": self.link,
            "project_id": self.project_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
