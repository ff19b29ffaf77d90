"""
Customer acceptance model.

An AcceptanceForm is written once and never changed. Logging it is what
completes a project and makes it ready for billing.
"""

from datetime import datetime, timezone

from isp_manager.models import db


class AcceptanceForm(db.Model):
    __tablename__ = "acceptance_forms"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    acceptance_date = db.Column(db.Date, nullable=False)
    billing_start_date = db.Column(db.Date, nullable=False)
    customer_signature = db.Column(db.String(1000), nullable=False, comment="URL or reference to the signed document")
    logged_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    service_id = db.Column(db.String(100))
    commissioned_date = db.Column(db.Date, nullable=True)
    signed_by_name = db.Column(db.String(200))
    signed_by_title = db.Column(db.String(200))
    isp_representative = db.Column(db.String(200))
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    project = db.relationship("Project", back_populates="acceptance_form")
    logged_by = db.relationship("User", foreign_keys=[logged_by_id])

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "acceptance_date": self.acceptance_date.isoformat() if self.acceptance_date else None,
            "billing_start_date": self.billing_start_date.isoformat() if self.billing_start_date else None,
            "customer_signature": self.customer_signature,
            "service_id": self.service_id,
            "commissioned_date": self.commissioned_date.isoformat() if self.commissioned_date else None,
            "signed_by_name": self.signed_by_name,
            "signed_by_title": self.signed_by_title,
            "isp_representative": self.isp_representative,
            "notes": self.notes,
            "logged_by": self.logged_by.to_summary() if self.logged_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
