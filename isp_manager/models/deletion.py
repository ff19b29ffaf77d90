"""
Deletion request model.

A non-admin owner asks for a project to be removed; an admin approves
(project and children are deleted) or rejects (request kept as a record).
The unique project_id column enforces one request per project.
"""

from datetime import datetime, timezone
from enum import Enum

from isp_manager.models import db


class DeletionRequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class DeletionRequest(db.Model):
    __tablename__ = "deletion_requests"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    reason = db.Column(db.Text, nullable=False)
    requested_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    request_date = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    status = db.Column(db.String(20), nullable=False, default=DeletionRequestStatus.PENDING.value, index=True)
    response_date = db.Column(db.DateTime(timezone=True), nullable=True)
    response_comments = db.Column(db.Text, nullable=True)
    responded_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    project = db.relationship("Project", back_populates="deletion_request")
    requested_by = db.relationship("User", foreign_keys=[requested_by_id])
    responded_by = db.relationship("User", foreign_keys=[responded_by_id])

    def to_dict(self, include_project=False):
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "reason": self.reason,
            "status": self.status,
            "request_date": self.request_date.isoformat() if self.request_date else None,
            "response_date": self.response_date.isoformat() if self.response_date else None,
            "response_comments": self.response_comments,
            "requested_by": self.requested_by.to_summary() if self.requested_by else None,
            "responded_by": self.responded_by.to_summary() if self.responded_by else None,
        }
        if include_project and self.project is not None:
            d["project"] = {
                "id": self.project.id,
                "project_name": self.project.project_name,
                "customer_name": self.project.customer_name,
                "status": self.project.status,
                "sales_person": self.project.sales_person.to_summary() if self.project.sales_person else None,
            }
        return d

    def __repr__(self):
        return f"<DeletionRequest {self.id}: project={self.project_id} [{self.status}]>"
