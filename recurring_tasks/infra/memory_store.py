from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Optional

from recurring_tasks.domain.entities import RecurringTaskEntity
from recurring_tasks.domain.errors import (
    ConcurrentModificationError,
    NotFoundError,
    ValidationError,
)
from recurring_tasks.domain.filters import RecurringTaskFilters

logger = logging.getLogger(__name__)


def _matches(task: RecurringTaskEntity, filters: RecurringTaskFilters) -> bool:
    if filters.status and task.status != filters.status:
        return False
    if filters.priority and task.priority != filters.priority:
        return False
    if filters.category and task.category != filters.category:
        return False
    if filters.is_paused is not None and task.is_paused != filters.is_paused:
        return False
    if filters.team_id and task.team_id != filters.team_id:
        return False
    if filters.due_before and task.next_occurrence > filters.due_before:
        return False
    if filters.search:
        needle = filters.search.lower()
        if needle not in task.title.lower() and needle not in task.description.lower():
            return False
    return True


class InMemoryRecurringTaskStore:
    """
    Dict-backed RecurringTaskStore.

    Entities are frozen, so readers always see a whole snapshot. Writes for
    one id are serialised by that id's lock and checked against the stored
    version before they replace the snapshot.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, RecurringTaskEntity] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, task_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(task_id, threading.Lock())

    def get(self, task_id: str) -> Optional[RecurringTaskEntity]:
        return self._tasks.get(task_id)

    def add(self, task: RecurringTaskEntity) -> RecurringTaskEntity:
        with self._lock_for(task.id):
            if task.id in self._tasks:
                raise ValidationError("id", f"duplicate recurring task id {task.id}")
            stored = replace(task, version=1)
            self._tasks[task.id] = stored
            return stored

    def save(self, task: RecurringTaskEntity, expected_version: int) -> RecurringTaskEntity:
        with self._lock_for(task.id):
            current = self._tasks.get(task.id)
            if current is None:
                raise NotFoundError(task.id)
            if current.version != expected_version:
                raise ConcurrentModificationError(task.id, expected_version, current.version)
            history = task.completion_history
            if history[: len(current.completion_history)] != current.completion_history:
                raise ValidationError("completion_history", "history is append-only")
            stored = replace(task, version=current.version + 1)
            self._tasks[task.id] = stored
            logger.debug("Saved recurring task id=%s version=%s", task.id, stored.version)
            return stored

    def delete(self, task_id: str) -> bool:
        with self._lock_for(task_id):
            removed = self._tasks.pop(task_id, None)
        with self._registry_lock:
            self._locks.pop(task_id, None)
        return removed is not None

    def list(self, filters: RecurringTaskFilters) -> list[RecurringTaskEntity]:
        tasks = sorted(
            (task for task in list(self._tasks.values()) if _matches(task, filters)),
            key=lambda task: (task.next_occurrence, task.created_at),
        )
        if filters.limit:
            return tasks[: filters.limit]
        return tasks
