"""
Shared pytest fixtures for the ISP Project Manager test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_caller: factory creating a User with a role and returning its Caller
    - admin / sales / other_sales / survey / projects_admin / finance / read_only
    - auth_headers: Bearer header for a Caller
    - drive_project: factory creating a project and advancing it to a status
"""

import pytest

from isp_manager import create_app
from isp_manager.models import db as _db
from isp_manager.models.auth import Role, User
from isp_manager.models.project import ProjectStatus
from isp_manager.services import pnl_service, project_service
from isp_manager.services.authorization import Caller
from isp_manager.services.jwt_service import generate_access_token
from isp_manager.utils.crypto import hash_password

TEST_PASSWORD = "secret123"

CRD = {
    "project_type": "New Link",
    "billing_trigger": "On Acceptance",
    "service_type": "Dedicated Internet Access",
    "bandwidth": "1 Gbps",
}

# Scenario figures: revenue 500 + 100 * 24 = 2900, cost 1000
BOQ_COST = 1000
PNL_PAYLOAD = {"one_time_revenue": 500, "recurring_revenue": 100, "contract_term_months": 24}

# Manual moves from Installation Pending to Soak Period, in order.
INSTALLATION_PATH = [
    ProjectStatus.IN_PROGRESS.value,
    ProjectStatus.PHYSICAL_INSTALLATION_COMPLETE.value,
    ProjectStatus.PROVISIONING_COMPLETE.value,
    ProjectStatus.COMMISSIONING_COMPLETE.value,
    ProjectStatus.UAT_PENDING.value,
    ProjectStatus.SOAK_PERIOD.value,
]


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users ────────────────────────────────────────────────────────────────


@pytest.fixture()
def make_caller():
    """Factory: insert a User with ``role`` and return the matching Caller."""

    def _make(role, email=None, name=None, is_active=True):
        role = getattr(role, "value", role)
        email = email or f"{role.lower()}.{User.query.count() + 1}@example.com"
        user = User(
            email=email,
            name=name or role.replace("_", " ").title(),
            role=role,
            is_active=is_active,
            password_hash=hash_password(TEST_PASSWORD, rounds=4),
        )
        _db.session.add(user)
        _db.session.commit()
        return Caller(user_id=user.id, role=user.role, name=user.name, email=user.email)

    return _make


@pytest.fixture()
def admin(make_caller):
    return make_caller(Role.ADMIN, email="admin@example.com", name="Ada Admin")


@pytest.fixture()
def sales(make_caller):
    return make_caller(Role.SALES, email="sales@example.com", name="Sam Sales")


@pytest.fixture()
def other_sales(make_caller):
    return make_caller(Role.SALES, email="sales2@example.com", name="Sasha Sales")


@pytest.fixture()
def survey(make_caller):
    return make_caller(Role.PROJECTS_SURVEY, email="survey@example.com", name="Sid Survey")


@pytest.fixture()
def projects_admin(make_caller):
    return make_caller(Role.PROJECTS_ADMIN, email="pa@example.com", name="Pat Projects")


@pytest.fixture()
def finance(make_caller):
    return make_caller(Role.FINANCE, email="finance@example.com", name="Fran Finance")


@pytest.fixture()
def read_only(make_caller):
    return make_caller(Role.READ_ONLY, email="viewer@example.com", name="Vic Viewer")


@pytest.fixture()
def auth_headers():
    """Return a function building the Authorization header for a Caller."""

    def _headers(caller):
        token = generate_access_token(caller.user_id, caller.email, caller.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── Workflow helpers ─────────────────────────────────────────────────────


@pytest.fixture()
def new_project(sales):
    """Factory: create a project owned by ``sales`` (or another caller)."""

    def _make(name="Acme Fibre Link", caller=None, **extra):
        payload = {"project_name": name, "customer_name": "Acme Ltd", "crd": dict(CRD)}
        payload.update(extra)
        return project_service.create_project(caller or sales, payload)

    return _make


@pytest.fixture()
def drive_project(new_project, admin, sales, survey, projects_admin):
    """Factory: create a project and advance it until it reaches ``status``.

    Returns the project id. Supported targets are the main-line statuses
    from ``CRD Submitted`` to ``Completed``.
    """

    def _drive(status, name="Acme Fibre Link"):
        pid = new_project(name=name)["id"]
        if status == ProjectStatus.CRD_SUBMITTED.value:
            return pid

        project_service.create_boq(survey, pid, {"total_cost": BOQ_COST})
        if status == ProjectStatus.BOQ_READY.value:
            return pid

        pnl = project_service.create_pnl(sales, pid, dict(PNL_PAYLOAD))["pnl"]
        if status == ProjectStatus.PENDING_APPROVAL.value:
            return pid

        pnl_service.approve_pnl(admin, pnl["id"], {})
        if status == ProjectStatus.APPROVED.value:
            return pid

        project_service.initiate_installation(sales, pid)
        if status == ProjectStatus.INSTALLATION_PENDING.value:
            return pid

        for step in INSTALLATION_PATH:
            project_service.update_project_status(projects_admin, pid, {"status": step})
            if status == step:
                return pid

        project_service.submit_acceptance_form(projects_admin, pid, {
            "acceptance_date": "2026-03-01",
            "billing_start_date": "2026-03-15",
            "customer_signature": "https://docs.example.com/signed/acme.pdf",
        })
        if status == ProjectStatus.COMPLETED.value:
            return pid
        raise ValueError(f"drive_project cannot reach {status!r}")

    return _drive
