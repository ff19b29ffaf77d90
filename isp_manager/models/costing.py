"""
ISP Project Manager
Costing domain models: BOQ (Bill of Quantities) and PnL (Profit & Loss).

Models:
    - Boq: installation cost estimate, 1:1 with Project
    - Pnl: profitability statement derived from the BOQ cost, 1:1 with Project

Derived P&L figures:
    total_revenue = one_time_revenue + recurring_revenue * contract_term_months
    gross_profit  = total_revenue - boq_cost
    gross_margin  = gross_profit / total_revenue * 100   (0 when total_revenue == 0)
"""

import math
from datetime import datetime, timezone
from enum import Enum

from isp_manager.core.exceptions import ValidationError
from isp_manager.models import db

# Input ceilings for BOQ and P&L payloads.
MAX_AMOUNT = 1e12
MAX_CONTRACT_TERM_MONTHS = 1200


class PnlApprovalStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    UNDER_REVIEW = "Under Review"


def total_revenue(one_time_revenue, recurring_revenue, contract_term_months):
    """Contract value over the full term."""
    return (one_time_revenue or 0) + (recurring_revenue or 0) * (contract_term_months or 0)


def compute_pnl_figures(boq_cost, one_time_revenue, recurring_revenue, contract_term_months):
    """Return ``(total_revenue, gross_profit, gross_margin)``.

    Margin is a percentage and is not clamped; it falls back to 0 when
    there is no revenue.

    Raises ValidationError when the figures are not finite.
    """
    revenue = total_revenue(one_time_revenue, recurring_revenue, contract_term_months)
    gross_profit = revenue - (boq_cost or 0)
    if not (math.isfinite(revenue) and math.isfinite(gross_profit)):
        raise ValidationError(
            "P&L figures are out of range", details={"total_revenue": "out of range"},
        )
    gross_margin = (gross_profit / revenue) * 100 if revenue else 0.0
    return revenue, gross_profit, gross_margin


class Boq(db.Model):
    __tablename__ = "boqs"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    total_cost = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text)
    prepared_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    date_prepared = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    project = db.relationship("Project", back_populates="boq")
    prepared_by = db.relationship("User", foreign_keys=[prepared_by_id])

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "total_cost": self.total_cost,
            "notes": self.notes,
            "prepared_by": self.prepared_by.to_summary() if self.prepared_by else None,
            "date_prepared": self.date_prepared.isoformat() if self.date_prepared else None,
        }

    def __repr__(self):
        return f"<Boq {self.id}: project={self.project_id} cost={self.total_cost}>"


class Pnl(db.Model):
    """
    Profit & Loss statement.

    boq_cost is a snapshot of Boq.total_cost taken at submission and again
    at every BOQ revision; it is never read live from the BOQ.
    """

    __tablename__ = "pnls"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    submitted_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    date_prepared = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    boq_cost = db.Column(db.Float, nullable=False, default=0.0)
    one_time_revenue = db.Column(db.Float, nullable=False, default=0.0)
    recurring_revenue = db.Column(db.Float, nullable=False, default=0.0)
    contract_term_months = db.Column(db.Integer, nullable=False)
    gross_profit = db.Column(db.Float, nullable=False, default=0.0)
    gross_margin = db.Column(db.Float, nullable=False, default=0.0)

    approval_status = db.Column(db.String(20), nullable=False, default=PnlApprovalStatus.PENDING.value, index=True)
    approver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approval_date = db.Column(db.DateTime(timezone=True), nullable=True)
    admin_comments = db.Column(db.Text, nullable=True)

    project = db.relationship("Project", back_populates="pnl")
    submitted_by = db.relationship("User", foreign_keys=[submitted_by_id])
    approver = db.relationship("User", foreign_keys=[approver_id])

    @property
    def total_revenue(self):
        return total_revenue(self.one_time_revenue, self.recurring_revenue, self.contract_term_months)

    def recalculate(self, boq_cost):
        """Re-snapshot the BOQ cost and refresh the derived figures."""
        self.boq_cost = boq_cost
        _, self.gross_profit, self.gross_margin = compute_pnl_figures(
            boq_cost, self.one_time_revenue, self.recurring_revenue, self.contract_term_months,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "date_prepared": self.date_prepared.isoformat() if self.date_prepared else None,
            "boq_cost": self.boq_cost,
            "one_time_revenue": self.one_time_revenue,
            "recurring_revenue": self.recurring_revenue,
            "contract_term_months": self.contract_term_months,
            "total_revenue": self.total_revenue,
            "gross_profit": self.gross_profit,
            "gross_margin": self.gross_margin,
            "approval_status": self.approval_status,
            "approval_date": self.approval_date.isoformat() if self.approval_date else None,
            "admin_comments": self.admin_comments,
            "submitted_by": self.submitted_by.to_summary() if self.submitted_by else None,
            "approver": self.approver.to_summary() if self.approver else None,
        }

    def __repr__(self):
        return f"<Pnl {self.id}: project={self.project_id} [{self.approval_status}]>"
