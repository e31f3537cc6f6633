"""add recurring task completion history"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_completion_history"
down_revision = "0001_create_recurring_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "recurring_task_completions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_id",
            sa.String(length=36),
            sa.ForeignKey("recurring_tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("completed_by", sa.String(length=200), nullable=False),
        sa.UniqueConstraint("task_id", "position", name="uq_recurring_task_completions_position"),
    )
    op.create_index(
        "ix_recurring_task_completions_task_id",
        "recurring_task_completions",
        ["task_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_recurring_task_completions_task_id", table_name="recurring_task_completions")
    op.drop_table("recurring_task_completions")
