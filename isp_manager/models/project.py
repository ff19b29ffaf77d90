"""
ISP Project Manager
Project domain model: Project (root aggregate) and its CRD.

Status literals are part of the external contract; UI logic and reports
compare against these exact strings.

Lifecycle:
    CRD Submitted -> Feasibility -> BOQ Ready -> Pending Approval -> Approved
    -> Installation Pending -> In Progress -> Physical Installation Complete
    -> Provisioning Complete -> Commissioning Complete -> UAT Pending
    -> {UAT Failed -> UAT Pending | Soak Period} -> Completed

    Side branch: Pending Approval -> P&L Rejected -> P&L Under Review
    -> Pending Approval (after the BOQ is revised).
"""

from datetime import datetime, timezone
from enum import Enum

from isp_manager.models import db


class ProjectStatus(str, Enum):
    CRD_SUBMITTED = "CRD Submitted"
    FEASIBILITY = "Feasibility"
    BOQ_READY = "BOQ Ready"
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    INSTALLATION_PENDING = "Installation Pending"
    IN_PROGRESS = "In Progress"
    PHYSICAL_INSTALLATION_COMPLETE = "Physical Installation Complete"
    PROVISIONING_COMPLETE = "Provisioning Complete"
    COMMISSIONING_COMPLETE = "Commissioning Complete"
    UAT_PENDING = "UAT Pending"
    UAT_FAILED = "UAT Failed"
    SOAK_PERIOD = "Soak Period"
    COMPLETED = "Completed"
    PNL_REJECTED = "P&L Rejected"
    PNL_UNDER_REVIEW = "P&L Under Review"


class BillingStatus(str, Enum):
    NOT_READY = "Not Ready"
    PENDING = "Pending"
    INITIATED = "Initiated"
    BILLED = "Billed"


VALID_PROJECT_STATUSES = frozenset(s.value for s in ProjectStatus)

BOQ_ENTRY_STATUSES = frozenset({
    ProjectStatus.CRD_SUBMITTED.value,
    ProjectStatus.FEASIBILITY.value,
})

# Statuses in which a project manager may be assigned.
INSTALLATION_PHASE_STATUSES = frozenset({
    ProjectStatus.INSTALLATION_PENDING.value,
    ProjectStatus.IN_PROGRESS.value,
    ProjectStatus.PHYSICAL_INSTALLATION_COMPLETE.value,
    ProjectStatus.PROVISIONING_COMPLETE.value,
    ProjectStatus.COMMISSIONING_COMPLETE.value,
    ProjectStatus.UAT_PENDING.value,
    ProjectStatus.UAT_FAILED.value,
    ProjectStatus.SOAK_PERIOD.value,
})


# ── Lifecycle Transition Guards ──────────────────────────────────────────────

# Transitions reachable through the manual status update. Every other edge
# is owned by a dedicated workflow action (BOQ, P&L, installation, acceptance).
STATUS_TRANSITIONS = {
    ProjectStatus.CRD_SUBMITTED.value:                  [ProjectStatus.FEASIBILITY.value],
    ProjectStatus.INSTALLATION_PENDING.value:           [ProjectStatus.IN_PROGRESS.value],
    ProjectStatus.IN_PROGRESS.value:                    [ProjectStatus.PHYSICAL_INSTALLATION_COMPLETE.value],
    ProjectStatus.PHYSICAL_INSTALLATION_COMPLETE.value: [ProjectStatus.PROVISIONING_COMPLETE.value],
    ProjectStatus.PROVISIONING_COMPLETE.value:          [ProjectStatus.COMMISSIONING_COMPLETE.value],
    ProjectStatus.COMMISSIONING_COMPLETE.value:         [ProjectStatus.UAT_PENDING.value],
    ProjectStatus.UAT_PENDING.value:                    [ProjectStatus.UAT_FAILED.value,
                                                         ProjectStatus.SOAK_PERIOD.value],
    ProjectStatus.UAT_FAILED.value:                     [ProjectStatus.UAT_PENDING.value,
                                                         ProjectStatus.IN_PROGRESS.value],
}


def validate_status_transition(old_status, new_status):
    """Return True if a manual Project status transition is valid."""
    return new_status in STATUS_TRANSITIONS.get(old_status, [])


def next_statuses(status):
    """Statuses a manual update may move to from ``status``."""
    return list(STATUS_TRANSITIONS.get(status, []))


class Project(db.Model):
    """
    Root aggregate of the workflow.

    Children (CRD, BOQ, PnL, AcceptanceForm, DeletionRequest) are 1:1 and
    are removed together with the project through ORM cascades.

    version_id is an optimistic lock: every UPDATE or DELETE of the row
    carries the version it read, and a row changed underneath fails with
    StaleDataError.
    """

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    project_name = db.Column(db.String(200), unique=True, nullable=False)
    customer_name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(40), nullable=False, default=ProjectStatus.CRD_SUBMITTED.value, index=True)
    billing_status = db.Column(db.String(20), nullable=True, index=True)

    site_a_address = db.Column(db.String(500))
    site_b_address = db.Column(db.String(500))
    target_delivery_date = db.Column(db.Date, nullable=True)

    sales_person_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    project_manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    version_id = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    # Relationships
    sales_person = db.relationship("User", foreign_keys=[sales_person_id])
    project_manager = db.relationship("User", foreign_keys=[project_manager_id])
    crd = db.relationship("Crd", back_populates="project", uselist=False, cascade="all, delete-orphan")
    boq = db.relationship("Boq", back_populates="project", uselist=False, cascade="all, delete-orphan")
    pnl = db.relationship("Pnl", back_populates="project", uselist=False, cascade="all, delete-orphan")
    acceptance_form = db.relationship(
        "AcceptanceForm", back_populates="project", uselist=False, cascade="all, delete-orphan",
    )
    deletion_request = db.relationship(
        "DeletionRequest", back_populates="project", uselist=False, cascade="all, delete-orphan",
    )

    def to_summary(self):
        """List-view shape: identifiers, statuses and child presence only."""
        return {
            "id": self.id,
            "project_name": self.project_name,
            "customer_name": self.customer_name,
            "status": self.status,
            "billing_status": self.billing_status,
            "sales_person": self.sales_person.to_summary() if self.sales_person else None,
            "project_manager": self.project_manager.to_summary() if self.project_manager else None,
            "crd": {"project_type": self.crd.project_type, "service_type": self.crd.service_type}
            if self.crd else None,
            "boq": {"id": self.boq.id} if self.boq else None,
            "pnl": {"id": self.pnl.id, "approval_status": self.pnl.approval_status} if self.pnl else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_dict(self, include_children=True):
        d = {
            "id": self.id,
            "project_name": self.project_name,
            "customer_name": self.customer_name,
            "status": self.status,
            "billing_status": self.billing_status,
            "site_a_address": self.site_a_address,
            "site_b_address": self.site_b_address,
            "target_delivery_date": self.target_delivery_date.isoformat() if self.target_delivery_date else None,
            "sales_person_id": self.sales_person_id,
            "project_manager_id": self.project_manager_id,
            "sales_person": self.sales_person.to_summary() if self.sales_person else None,
            "project_manager": self.project_manager.to_summary() if self.project_manager else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            d["crd"] = self.crd.to_dict() if self.crd else None
            d["boq"] = self.boq.to_dict() if self.boq else None
            d["pnl"] = self.pnl.to_dict() if self.pnl else None
            d["acceptance_form"] = self.acceptance_form.to_dict() if self.acceptance_form else None
            d["deletion_request"] = self.deletion_request.to_dict() if self.deletion_request else None
        return d

    def __repr__(self):
        return f"<Project {self.id}: {self.project_name} [{self.status}]>"


class Crd(db.Model):
    """Customer Requirement Document. Created with its project, never updated."""

    __tablename__ = "crds"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    date_created = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    customer_contact = db.Column(db.String(200))
    customer_phone = db.Column(db.String(50))
    customer_email = db.Column(db.String(200))

    project_type = db.Column(db.String(100), nullable=False)
    billing_trigger = db.Column(db.String(100), nullable=False)
    service_type = db.Column(db.String(100), nullable=False)
    bandwidth = db.Column(db.String(100))
    sla_requirements = db.Column(db.Text)
    interface_type = db.Column(db.String(100))
    redundancy = db.Column(db.Boolean, nullable=False, default=False)
    ip_requirements = db.Column(db.Text)
    notes = db.Column(db.Text)

    project = db.relationship("Project", back_populates="crd")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "date_created": self.date_created.isoformat() if self.date_created else None,
            "customer_contact": self.customer_contact,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "project_type": self.project_type,
            "billing_trigger": self.billing_trigger,
            "service_type": self.service_type,
            "bandwidth": self.bandwidth,
            "sla_requirements": self.sla_requirements,
            "interface_type": self.interface_type,
            "redundancy": self.redundancy,
            "ip_requirements": self.ip_requirements,
            "notes": self.notes,
        }
