from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import TaskPriority, TaskStatus


@dataclass(frozen=True)
class RecurringTaskFilters:
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    category: Optional[str] = None
    is_paused: Optional[bool] = None
    team_id: Optional[str] = None
    search: str | None = None
    due_before: Optional[datetime] = None
    limit: int | None = None
