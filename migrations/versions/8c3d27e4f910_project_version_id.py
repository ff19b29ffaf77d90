"""project_version_id

Add the optimistic-lock counter to projects. Existing rows start at 1.

Revision ID: 8c3d27e4f910
Revises: 5e1f0a9c2b71
Create Date: 2026-10-19 14:05:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8c3d27e4f910"
down_revision = "5e1f0a9c2b71"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("projects", schema=None) as batch_op:
        batch_op.add_column(sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"))


def downgrade():
    with op.batch_alter_table("projects", schema=None) as batch_op:
        batch_op.drop_column("version_id")
