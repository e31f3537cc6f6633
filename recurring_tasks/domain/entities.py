from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import RecurrencePattern, TaskPriority, TaskStatus


@dataclass(frozen=True)
class CompletionRecord:
    occurred_at: datetime
    completed_by: str


@dataclass(frozen=True)
class RecurringTaskEntity:
    id: str
    title: str
    description: str
    priority: TaskPriority
    status: TaskStatus
    category: Optional[str]
    assignees: tuple[str, ...]
    recurrence_pattern: RecurrencePattern
    start_date: datetime
    end_date: Optional[datetime]
    next_occurrence: datetime
    is_paused: bool
    team_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    completion_history: tuple[CompletionRecord, ...] = field(default_factory=tuple)
    version: int = 1

    @property
    def schedule_ended(self) -> bool:
        return self.end_date is not None and self.next_occurrence > self.end_date
