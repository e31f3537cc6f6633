"""
Storage port used by the lifecycle service.

The service depends on this Protocol rather than on a concrete store, so the
SQLAlchemy repository, the in-memory store and test doubles are
interchangeable.
"""
from __future__ import annotations

from typing import Optional, Protocol

from .entities import RecurringTaskEntity
from .filters import RecurringTaskFilters


class RecurringTaskStore(Protocol):
    def get(self, task_id: str) -> Optional[RecurringTaskEntity]: ...

    def add(self, task: RecurringTaskEntity) -> RecurringTaskEntity: ...

    def save(self, task: RecurringTaskEntity, expected_version: int) -> RecurringTaskEntity:
        """
        Compare-and-swap write.

        Persists ``task`` only if the stored revision still equals
        ``expected_version`` and returns the stored task with its new version.
        Raises NotFoundError if the task is gone and
        ConcurrentModificationError if the revision moved.
        """
        ...

    def delete(self, task_id: str) -> bool: ...

    def list(self, filters: RecurringTaskFilters) -> list[RecurringTaskEntity]: ...
