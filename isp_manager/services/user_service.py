"""
User Service - registration, login and role-filtered listing.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from isp_manager.core.exceptions import AuthenticationError, ConflictError, ValidationError
from isp_manager.models import db
from isp_manager.models.auth import VALID_ROLES, User
from isp_manager.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email is required", details={"email": "required"})
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"})


# ═══════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════
def register_user(email: str, password: str, role: str, name: str | None = None) -> User:
    """Create a user. The display name defaults to the email address."""
    email = _normalize_email(email)
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )
    if role not in VALID_ROLES:
        raise ValidationError(
            f"Invalid role specified. Valid roles are: {', '.join(sorted(VALID_ROLES))}",
            details={"role": "invalid"},
        )
    if User.query.filter_by(email=email).first() is not None:
        raise ConflictError.duplicate("User", "email", email)

    user = User(
        email=email,
        name=(name or "").strip() or email,
        role=role,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.commit()
    logger.info("User registered id=%s role=%s", user.id, user.role)
    return user


# ═══════════════════════════════════════════════════════════════
# Login helpers
# ═══════════════════════════════════════════════════════════════
def authenticate_user(email: str, password: str) -> User:
    """Authenticate a user with email + password. Returns User on success."""
    if not email or not password:
        raise ValidationError("Email and password are required.")
    try:
        email = _normalize_email(email)
    except ValidationError:
        raise AuthenticationError("Invalid email or password.")
    user = User.query.filter_by(email=email).first()
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid email or password, or user inactive.")
    if not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password.")
    return user


def get_active_user(user_id: int) -> User | None:
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


# ═══════════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════════
def list_users(roles: list[str] | None = None) -> list[dict]:
    """Users ordered by name, optionally restricted to ``roles``.

    Unknown role names are ignored; if none remain the filter is dropped.
    """
    q = User.query
    wanted = [r for r in (roles or []) if r in VALID_ROLES]
    if wanted:
        q = q.filter(User.role.in_(wanted))
    return [u.to_dict() for u in q.order_by(User.name.asc(), User.id.asc()).all()]
