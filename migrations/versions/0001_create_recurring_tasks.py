"""create recurring tasks table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_recurring_tasks"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "recurring_tasks",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("assignees", sa.JSON(), nullable=False),
        sa.Column("recurrence_pattern", sa.String(length=20), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("next_occurrence", sa.DateTime(), nullable=False),
        sa.Column("is_paused", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("team_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_recurring_tasks_status", "recurring_tasks", ["status"], unique=False)
    op.create_index("ix_recurring_tasks_category", "recurring_tasks", ["category"], unique=False)
    op.create_index("ix_recurring_tasks_team_id", "recurring_tasks", ["team_id"], unique=False)
    op.create_index(
        "ix_recurring_tasks_next_occurrence", "recurring_tasks", ["next_occurrence"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_recurring_tasks_next_occurrence", table_name="recurring_tasks")
    op.drop_index("ix_recurring_tasks_team_id", table_name="recurring_tasks")
    op.drop_index("ix_recurring_tasks_category", table_name="recurring_tasks")
    op.drop_index("ix_recurring_tasks_status", table_name="recurring_tasks")
    op.drop_table("recurring_tasks")
