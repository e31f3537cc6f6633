from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from recurring_tasks.domain.entities import CompletionRecord, RecurringTaskEntity
from recurring_tasks.domain.enums import RecurrencePattern, TaskPriority, TaskStatus
from recurring_tasks.domain.errors import (
    ConcurrentModificationError,
    NotFoundError,
    ValidationError,
)
from recurring_tasks.domain.filters import RecurringTaskFilters

from .db import SessionLocal
from .models import CompletionRecordModel, RecurringTaskModel

logger = logging.getLogger(__name__)

# Columns copied verbatim between entity and model on every save.
_MUTABLE_COLUMNS = (
    "title",
    "description",
    "category",
    "start_date",
    "end_date",
    "next_occurrence",
    "is_paused",
    "team_id",
    "updated_at",
)


def _to_entity(model: RecurringTaskModel) -> RecurringTaskEntity:
    return RecurringTaskEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        priority=TaskPriority(model.priority),
        status=TaskStatus(model.status),
        category=model.category,
        assignees=tuple(model.assignees or ()),
        recurrence_pattern=RecurrencePattern(model.recurrence_pattern),
        start_date=model.start_date,
        end_date=model.end_date,
        next_occurrence=model.next_occurrence,
        is_paused=model.is_paused,
        team_id=model.team_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
        completion_history=tuple(
            CompletionRecord(occurred_at=record.occurred_at, completed_by=record.completed_by)
            for record in model.completion_history
        ),
        version=model.version,
    )


def _apply_filters(stmt, filters: RecurringTaskFilters) -> object:
    if filters.status:
        stmt = stmt.where(RecurringTaskModel.status == filters.status.value)
    if filters.priority:
        stmt = stmt.where(RecurringTaskModel.priority == filters.priority.value)
    if filters.category:
        stmt = stmt.where(RecurringTaskModel.category == filters.category)
    if filters.is_paused is not None:
        stmt = stmt.where(RecurringTaskModel.is_paused == filters.is_paused)
    if filters.team_id:
        stmt = stmt.where(RecurringTaskModel.team_id == filters.team_id)
    if filters.due_before:
        stmt = stmt.where(RecurringTaskModel.next_occurrence <= filters.due_before)

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                RecurringTaskModel.title.ilike(pattern),
                RecurringTaskModel.description.ilike(pattern),
            )
        )

    return stmt


class RecurringTaskRepository:
    """SQLAlchemy-backed RecurringTaskStore.

    The ``version`` column is the mapper's version counter, so every UPDATE is
    issued as ``... WHERE id = ? AND version = ?``; a writer that loses the race
    gets StaleDataError, surfaced as ConcurrentModificationError.
    """

    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def get(self, task_id: str) -> Optional[RecurringTaskEntity]:
        with self._session_factory() as session:
            task = session.get(RecurringTaskModel, task_id)
            return _to_entity(task) if task else None

    def add(self, task: RecurringTaskEntity) -> RecurringTaskEntity:
        with self._session_factory() as session:
            model = RecurringTaskModel(
                id=task.id,
                priority=task.priority.value,
                status=task.status.value,
                assignees=list(task.assignees),
                recurrence_pattern=task.recurrence_pattern.value,
                created_at=task.created_at,
                **{name: getattr(task, name) for name in _MUTABLE_COLUMNS},
            )
            model.completion_history = [
                CompletionRecordModel(
                    position=position,
                    occurred_at=record.occurred_at,
                    completed_by=record.completed_by,
                )
                for position, record in enumerate(task.completion_history)
            ]
            session.add(model)
            session.commit()
            session.refresh(model)
            logger.debug("Inserted recurring task id=%s", model.id)
            return _to_entity(model)

    def save(self, task: RecurringTaskEntity, expected_version: int) -> RecurringTaskEntity:
        with self._session_factory() as session:
            model = session.get(RecurringTaskModel, task.id)
            if not model:
                raise NotFoundError(task.id)
            if model.version != expected_version:
                raise ConcurrentModificationError(task.id, expected_version, model.version)

            stored = len(model.completion_history)
            kept = [(record.occurred_at, record.completed_by) for record in model.completion_history]
            incoming = [
                (record.occurred_at, record.completed_by) for record in task.completion_history[:stored]
            ]
            if incoming != kept:
                raise ValidationError("completion_history", "history is append-only")

            for name in _MUTABLE_COLUMNS:
                setattr(model, name, getattr(task, name))
            model.priority = task.priority.value
            model.status = task.status.value
            model.assignees = list(task.assignees)
            model.recurrence_pattern = task.recurrence_pattern.value
            for position, record in enumerate(task.completion_history[stored:], start=stored):
                model.completion_history.append(
                    CompletionRecordModel(
                        position=position,
                        occurred_at=record.occurred_at,
                        completed_by=record.completed_by,
                    )
                )

            try:
                session.commit()
            except StaleDataError as exc:
                session.rollback()
                raise ConcurrentModificationError(task.id, expected_version, None) from exc
            session.refresh(model)
            logger.debug("Saved recurring task id=%s version=%s", model.id, model.version)
            return _to_entity(model)

    def delete(self, task_id: str) -> bool:
        with self._session_factory() as session:
            task = session.get(RecurringTaskModel, task_id)
            if not task:
                return False
            session.delete(task)
            session.commit()
            logger.debug("Deleted recurring task id=%s", task_id)
            return True

    def list(self, filters: RecurringTaskFilters) -> list[RecurringTaskEntity]:
        with self._session_factory() as session:
            stmt = select(RecurringTaskModel)
            stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(
                RecurringTaskModel.next_occurrence.asc(),
                RecurringTaskModel.created_at.asc(),
            )
            if filters.limit:
                stmt = stmt.limit(filters.limit)
            return [_to_entity(task) for task in session.scalars(stmt)]
