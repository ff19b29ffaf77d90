"""initial_workflow_schema

Create users, projects and the 1:1 project children (crds, boqs, pnls,
acceptance_forms, deletion_requests) plus notifications.

Revision ID: 5e1f0a9c2b71
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5e1f0a9c2b71"
down_revision = None
branch_labels = None
depends_on = None


def _child_fk(table):
    return sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE",
                                   name=f"fk_{table}_project_id")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("password_hash", sa.String(length=256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_name", sa.String(length=200), nullable=False),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False),
        sa.Column("billing_status", sa.String(length=20), nullable=True),
        sa.Column("site_a_address", sa.String(length=500), nullable=True),
        sa.Column("site_b_address", sa.String(length=500), nullable=True),
        sa.Column("target_delivery_date", sa.Date(), nullable=True),
        sa.Column("sales_person_id", sa.Integer(), nullable=False),
        sa.Column("project_manager_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["sales_person_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["project_manager_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_name"),
    )
    op.create_index("ix_projects_status", "projects", ["status"])
    op.create_index("ix_projects_billing_status", "projects", ["billing_status"])
    op.create_index("ix_projects_sales_person_id", "projects", ["sales_person_id"])

    op.create_table(
        "crds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("date_created", sa.DateTime(timezone=True), nullable=True),
        sa.Column("customer_contact", sa.String(length=200), nullable=True),
        sa.Column("customer_phone", sa.String(length=50), nullable=True),
        sa.Column("customer_email", sa.String(length=200), nullable=True),
        sa.Column("project_type", sa.String(length=100), nullable=False),
        sa.Column("billing_trigger", sa.String(length=100), nullable=False),
        sa.Column("service_type", sa.String(length=100), nullable=False),
        sa.Column("bandwidth", sa.String(length=100), nullable=True),
        sa.Column("sla_requirements", sa.Text(), nullable=True),
        sa.Column("interface_type", sa.String(length=100), nullable=True),
        sa.Column("redundancy", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ip_requirements", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _child_fk("crds"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
    )

    op.create_table(
        "boqs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("total_cost", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("prepared_by_id", sa.Integer(), nullable=False),
        sa.Column("date_prepared", sa.DateTime(timezone=True), nullable=True),
        _child_fk("boqs"),
        sa.ForeignKeyConstraint(["prepared_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
    )

    op.create_table(
        "pnls",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("submitted_by_id", sa.Integer(), nullable=False),
        sa.Column("date_prepared", sa.DateTime(timezone=True), nullable=True),
        sa.Column("boq_cost", sa.Float(), nullable=False),
        sa.Column("one_time_revenue", sa.Float(), nullable=False),
        sa.Column("recurring_revenue", sa.Float(), nullable=False),
        sa.Column("contract_term_months", sa.Integer(), nullable=False),
        sa.Column("gross_profit", sa.Float(), nullable=False),
        sa.Column("gross_margin", sa.Float(), nullable=False),
        sa.Column("approval_status", sa.String(length=20), nullable=False),
        sa.Column("approver_id", sa.Integer(), nullable=True),
        sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_comments", sa.Text(), nullable=True),
        _child_fk("pnls"),
        sa.ForeignKeyConstraint(["submitted_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["approver_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
    )
    op.create_index("ix_pnls_approval_status", "pnls", ["approval_status"])

    op.create_table(
        "acceptance_forms",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("acceptance_date", sa.Date(), nullable=False),
        sa.Column("billing_start_date", sa.Date(), nullable=False),
        sa.Column("customer_signature", sa.String(length=1000), nullable=False,
                  comment="URL or reference to the signed document"),
        sa.Column("logged_by_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.String(length=100), nullable=True),
        sa.Column("commissioned_date", sa.Date(), nullable=True),
        sa.Column("signed_by_name", sa.String(length=200), nullable=True),
        sa.Column("signed_by_title", sa.String(length=200), nullable=True),
        sa.Column("isp_representative", sa.String(length=200), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _child_fk("acceptance_forms"),
        sa.ForeignKeyConstraint(["logged_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
    )

    op.create_table(
        "deletion_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("requested_by_id", sa.Integer(), nullable=False),
        sa.Column("request_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("response_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_comments", sa.Text(), nullable=True),
        sa.Column("responded_by_id", sa.Integer(), nullable=True),
        _child_fk("deletion_requests"),
        sa.ForeignKeyConstraint(["requested_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["responded_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
    )
    op.create_index("ix_deletion_requests_status", "deletion_requests", ["status"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("recipient_id", sa.Integer(), nullable=False),
        sa.Column("creator_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=True),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_project_id", "notifications", ["project_id"])


def downgrade():
    op.drop_table("notifications")
    op.drop_table("deletion_requests")
    op.drop_table("acceptance_forms")
    op.drop_table("pnls")
    op.drop_table("boqs")
    op.drop_table("crds")
    op.drop_table("projects")
    op.drop_table("users")
