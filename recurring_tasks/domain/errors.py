from __future__ import annotations


class RecurringTaskError(Exception):
    """Base class for every error raised by the scheduling core."""


class NotFoundError(RecurringTaskError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Recurring task not found: {task_id}")
        self.task_id = task_id


class PausedTaskError(RecurringTaskError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Recurring task {task_id} is paused; resume it before completing a cycle")
        self.task_id = task_id


class ScheduleEndedError(RecurringTaskError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Recurring task {task_id} has no occurrences left before its end date")
        self.task_id = task_id


class InvalidPatternError(RecurringTaskError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid recurrence pattern: {value!r}")
        self.value = value


class ConcurrentModificationError(RecurringTaskError):
    """Another writer changed the task first. Re-read and retry the whole operation."""

    def __init__(self, task_id: str, expected_version: int, actual_version: int | None) -> None:
        super().__init__(
            f"Recurring task {task_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.task_id = task_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class ValidationError(RecurringTaskError, ValueError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
