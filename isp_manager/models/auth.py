"""
Auth Models: users and roles.

Roles are a closed set; authorization decisions are made against these
literal strings by ``isp_manager.services.authorization``.
"""

from datetime import datetime, timezone
from enum import Enum

from isp_manager.models import db


class Role(str, Enum):
    ADMIN = "ADMIN"
    SALES = "SALES"
    PROJECTS_ADMIN = "PROJECTS_ADMIN"
    PROJECTS_SURVEY = "PROJECTS_SURVEY"
    PROJECTS_INSTALL = "PROJECTS_INSTALL"
    PROJECTS_COMMISSIONING = "PROJECTS_COMMISSIONING"
    FINANCE = "FINANCE"
    READ_ONLY = "READ_ONLY"


VALID_ROLES = frozenset(r.value for r in Role)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200))
    role = db.Column(db.String(30), nullable=False, default=Role.READ_ONLY.value)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    password_hash = db.Column(db.String(256))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_summary(self):
        """Compact form embedded in project, P&L and request payloads."""
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
