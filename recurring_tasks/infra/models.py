from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RecurringTaskModel(Base):
    __tablename__ = "recurring_tasks"

    id = Column(String(36), primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(String(20), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="pending", index=True)
    category = Column(String(100), nullable=True, index=True)
    assignees = Column(JSON, nullable=False, default=list)
    recurrence_pattern = Column(String(20), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    next_occurrence = Column(DateTime, nullable=False, index=True)
    is_paused = Column(Boolean, nullable=False, default=False)
    team_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False, default=1)

    completion_history = relationship(
        "CompletionRecordModel",
        order_by="CompletionRecordModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class CompletionRecordModel(Base):
    __tablename__ = "recurring_task_completions"

    id = Column(Integer, primary_key=True)
    task_id = Column(
        String(36),
        ForeignKey("recurring_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    occurred_at = Column(DateTime, nullable=False)
    completed_by = Column(String(200), nullable=False)

    __table_args__ = (
        UniqueConstraint("task_id", "position", name="uq_recurring_task_completions_position"),
    )
