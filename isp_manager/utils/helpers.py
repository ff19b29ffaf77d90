"""Shared payload parsing helpers for services and blueprints.

parse_date:      lenient, returns None on bad input
require_date:    strict, raises ValidationError
require_text:    non-empty string or ValidationError
require_number:  finite number with optional bounds
"""
import math
from datetime import date, datetime

from isp_manager.core.exceptions import ValidationError

# Largest primary key the store accepts (signed 32-bit INTEGER).
MAX_ID = 2_147_483_647


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def require_date(data, field):
    """Return ``data[field]`` as a date or raise ValidationError."""
    raw = data.get(field)
    if raw in (None, ""):
        raise ValidationError(f"{field} is required", details={field: "required"})
    parsed = parse_date(raw)
    if parsed is None:
        raise ValidationError(f"{field} must be a valid date", details={field: "invalid date"})
    return parsed


def optional_date(data, field):
    """Like require_date but None when the field is absent."""
    if data.get(field) in (None, ""):
        return None
    return require_date(data, field)


def require_text(data, field, label=None):
    """Return a stripped non-empty string or raise ValidationError."""
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label or field} is required", details={field: "required"})
    return value.strip()


def optional_text(data, field):
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid type"})
    return value.strip() or None


def require_number(data, field, *, minimum=None, maximum=None, exclusive=False, integer=False):
    """Return ``data[field]`` as a number, enforcing optional bounds.

    ``exclusive`` applies to the lower bound only; ``maximum`` is inclusive.

    Booleans and non-finite values are rejected. Numeric strings are
    accepted since form posts carry them.
    """
    raw = data.get(field)
    if raw is None or raw == "" or isinstance(raw, bool):
        raise ValidationError(f"{field} is required and must be a number", details={field: "required"})
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "invalid number"})
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number", details={field: "invalid number"})
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be at most {maximum:g}", details={field: "out of range"})
    if integer:
        if value != int(value):
            raise ValidationError(f"{field} must be a whole number", details={field: "invalid integer"})
        value = int(value)
    if minimum is not None:
        if exclusive and value <= minimum:
            raise ValidationError(f"{field} must be greater than {minimum}", details={field: "out of range"})
        if not exclusive and value < minimum:
            raise ValidationError(f"{field} must be at least {minimum}", details={field: "out of range"})
    return value


def optional_bool(data, field, default=False):
    value = data.get(field, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
