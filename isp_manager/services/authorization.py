"""
Authorization Guard: role and ownership checks for workflow actions.

A single declarative table maps each action name to a predicate over the
caller's role and an ``AuthContext`` describing the target entity. The
guard is pure (no I/O); transitions load the entity, build the context and
call ``check_permission`` before any mutation.

Usage:
    from isp_manager.services.authorization import Action, AuthContext, check_permission

    check_permission(caller, Action.APPROVE_PNL)
    check_permission(caller, Action.INITIATE_INSTALLATION,
                     AuthContext(is_sales_owner=project.sales_person_id == caller.user_id))
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from isp_manager.core.exceptions import ForbiddenError
from isp_manager.models.auth import Role


class Action(str, Enum):
    CREATE_PROJECT = "create_project"
    CREATE_BOQ = "create_boq"
    CREATE_PNL = "create_pnl"
    APPROVE_PNL = "approve_pnl"
    REJECT_PNL = "reject_pnl"
    REVIEW_PNL = "review_pnl"
    UPDATE_BOQ_FOR_REVIEW = "update_boq_for_review"
    INITIATE_INSTALLATION = "initiate_installation"
    ASSIGN_PROJECT_MANAGER = "assign_project_manager"
    UPDATE_PROJECT_STATUS = "update_project_status"
    SUBMIT_ACCEPTANCE_FORM = "submit_acceptance_form"
    INITIATE_BILLING = "initiate_billing"
    COMPLETE_BILLING = "complete_billing"
    REQUEST_DELETION = "request_deletion"
    APPROVE_DELETION = "approve_deletion"
    REJECT_DELETION = "reject_deletion"
    LIST_DELETION_REQUESTS = "list_deletion_requests"
    LIST_PENDING_PNLS = "list_pending_pnls"


@dataclass(frozen=True)
class Caller:
    """Verified identity of the user invoking an action."""

    user_id: int
    role: str
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class AuthContext:
    """Entity state the ownership predicates need."""

    is_sales_owner: bool = False
    is_pnl_submitter: bool = False


_EMPTY = AuthContext()


def _roles(*roles: Role) -> Callable[[str, AuthContext], bool]:
    allowed = frozenset(r.value for r in roles)
    return lambda role, ctx: role in allowed


def _admin_or_sales_owner(role: str, ctx: AuthContext) -> bool:
    return role == Role.ADMIN.value or (role == Role.SALES.value and ctx.is_sales_owner)


def _admin_or_pnl_submitter(role: str, ctx: AuthContext) -> bool:
    return role == Role.ADMIN.value or (role == Role.SALES.value and ctx.is_pnl_submitter)


def _billing_initiator(role: str, ctx: AuthContext) -> bool:
    return role in (Role.ADMIN.value, Role.FINANCE.value) or ctx.is_sales_owner


_admin_only = _roles(Role.ADMIN)

PERMISSION_MATRIX: dict[Action, Callable[[str, AuthContext], bool]] = {
    Action.CREATE_PROJECT:          _roles(Role.SALES, Role.ADMIN),
    Action.CREATE_BOQ:              _roles(Role.PROJECTS_ADMIN, Role.PROJECTS_SURVEY, Role.ADMIN),
    Action.CREATE_PNL:              _roles(Role.SALES, Role.ADMIN),
    Action.APPROVE_PNL:             _admin_only,
    Action.REJECT_PNL:              _admin_only,
    Action.REVIEW_PNL:              _admin_or_pnl_submitter,
    Action.UPDATE_BOQ_FOR_REVIEW:   _roles(Role.PROJECTS_SURVEY, Role.PROJECTS_ADMIN, Role.ADMIN),
    Action.INITIATE_INSTALLATION:   _admin_or_sales_owner,
    Action.ASSIGN_PROJECT_MANAGER:  _roles(Role.PROJECTS_ADMIN, Role.ADMIN),
    Action.UPDATE_PROJECT_STATUS:   _roles(Role.PROJECTS_ADMIN, Role.ADMIN),
    Action.SUBMIT_ACCEPTANCE_FORM:  _roles(Role.PROJECTS_ADMIN, Role.ADMIN),
    Action.INITIATE_BILLING:        _billing_initiator,
    Action.COMPLETE_BILLING:        _roles(Role.FINANCE, Role.ADMIN),
    Action.REQUEST_DELETION:        _admin_or_sales_owner,
    Action.APPROVE_DELETION:        _admin_only,
    Action.REJECT_DELETION:         _admin_only,
    Action.LIST_DELETION_REQUESTS:  _admin_only,
    Action.LIST_PENDING_PNLS:       _admin_only,
}


def authorize(role: str, action: Action | str, context: AuthContext | None = None) -> bool:
    """Return True if ``role`` may perform ``action`` given ``context``.

    Unknown actions are denied.
    """
    try:
        predicate = PERMISSION_MATRIX[Action(action)]
    except ValueError:
        return False
    return predicate(role, context or _EMPTY)


def check_permission(caller: Caller, action: Action | str, context: AuthContext | None = None) -> None:
    """Assert the caller may perform the action; raise ForbiddenError if not."""
    if not authorize(caller.role, action, context):
        raise ForbiddenError(action=getattr(action, "value", action), role=caller.role)
