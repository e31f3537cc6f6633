from __future__ import annotations

import os
from datetime import datetime, timedelta

import pytest

# Settings are read at import time; point them at a throwaway database.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from recurring_tasks.infra.memory_store import InMemoryRecurringTaskStore  # noqa: E402
from recurring_tasks.services.recurring_task_service import RecurringTaskService  # noqa: E402


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 8, 0))


@pytest.fixture()
def store() -> InMemoryRecurringTaskStore:
    return InMemoryRecurringTaskStore()


@pytest.fixture()
def service(store: InMemoryRecurringTaskStore, clock: FixedClock) -> RecurringTaskService:
    return RecurringTaskService(store, clock=clock)
