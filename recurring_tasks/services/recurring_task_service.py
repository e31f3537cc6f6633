from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any, TypeVar

from recurring_tasks.domain.entities import CompletionRecord, RecurringTaskEntity
from recurring_tasks.domain.enums import DeleteOption, TaskPriority, TaskStatus
from recurring_tasks.domain.errors import (
    NotFoundError,
    PausedTaskError,
    ScheduleEndedError,
    ValidationError,
)
from recurring_tasks.domain.filters import RecurringTaskFilters
from recurring_tasks.domain.ports import RecurringTaskStore
from recurring_tasks.domain.recurrence import (
    calculate_next_occurrence,
    first_occurrence_on_or_after,
    next_occurrences,
    occurrences_between,
    parse_pattern,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=StrEnum)

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000

UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "priority",
    "status",
    "assignees",
    "category",
    "team_id",
    "recurrence_pattern",
    "end_date",
    "is_paused",
})


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RecurringTaskService:
    """Lifecycle manager for recurring tasks.

    Every mutation is a read-modify-write of one task: it runs under that
    task's lock and is persisted with a version check, so two callers can
    never both advance the schedule from the same starting point.
    """

    def __init__(
        self,
        store: RecurringTaskStore,
        clock: Callable[[], datetime] = utcnow,
        default_completed_by: str = "system",
        preview_count: int = 5,
    ) -> None:
        self._store = store
        self._clock = clock
        self._default_completed_by = default_completed_by
        self._preview_count = preview_count
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ---- reads ----

    def get_by_id(self, task_id: str) -> RecurringTaskEntity | None:
        return self._store.get(task_id)

    def get(self, task_id: str) -> RecurringTaskEntity:
        task = self._store.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def list_tasks(self, filters: RecurringTaskFilters | None = None) -> list[RecurringTaskEntity]:
        return self._store.list(filters or RecurringTaskFilters())

    def list_due(self, moment: datetime | None = None) -> list[RecurringTaskEntity]:
        """Active tasks whose next occurrence is at or before ``moment`` (default: now)."""
        moment = moment or self._clock()
        tasks = self._store.list(RecurringTaskFilters(is_paused=False, due_before=moment))
        return [task for task in tasks if not task.schedule_ended]

    def completion_rate(self, task_id: str) -> float:
        task = self.get(task_id)
        elapsed = [
            occurrence
            for occurrence in occurrences_between(
                task.start_date, task.next_occurrence, task.recurrence_pattern
            )
            if occurrence < task.next_occurrence
        ]
        if not elapsed:
            return 0.0
        return min(100.0, len(task.completion_history) / len(elapsed) * 100)

    def upcoming(self, task_id: str, count: int | None = None) -> list[datetime]:
        task = self.get(task_id)
        if task.schedule_ended:
            return []
        occurrences = next_occurrences(
            task.next_occurrence,
            task.recurrence_pattern,
            self._preview_count if count is None else count,
        )
        if task.end_date is not None:
            occurrences = [occurrence for occurrence in occurrences if occurrence <= task.end_date]
        return occurrences

    # ---- creation ----

    def create(self, data: dict) -> RecurringTaskEntity:
        fields = dict(data)
        now = self._clock()

        pattern = parse_pattern(fields.pop("recurrence_pattern", None))
        start_date = fields.pop("start_date", None)
        if start_date is None:
            raise ValidationError("start_date", "start date is required")
        start_date = _as_datetime(start_date)
        end_date = _optional_datetime(fields.pop("end_date", None))
        if end_date is not None and end_date < start_date:
            raise ValidationError("end_date", "end date must not be before start date")

        next_occurrence = fields.pop("next_occurrence", None)
        if next_occurrence is None:
            next_occurrence = first_occurrence_on_or_after(start_date, pattern, now)
        else:
            next_occurrence = _as_datetime(next_occurrence)

        normalized = self._normalize_fields(fields)
        task = RecurringTaskEntity(
            id=uuid.uuid4().hex,
            title=normalized.get("title", ""),
            description=normalized.get("description", ""),
            priority=normalized.get("priority", TaskPriority.MEDIUM),
            status=normalized.get("status", TaskStatus.PENDING),
            category=normalized.get("category"),
            assignees=normalized.get("assignees", ()),
            recurrence_pattern=pattern,
            start_date=start_date,
            end_date=end_date,
            next_occurrence=next_occurrence,
            is_paused=False,
            team_id=normalized.get("team_id"),
            created_at=now,
            updated_at=now,
        )
        if not task.title:
            raise ValidationError("title", "title is required")

        created = self._store.add(task)
        logger.info(
            "Recurring task created id=%s pattern=%s next=%s",
            created.id,
            created.recurrence_pattern.value,
            created.next_occurrence.isoformat(),
        )
        return created

    # ---- lifecycle ----

    def pause(self, task_id: str) -> RecurringTaskEntity:
        task = self._mutate(task_id, _set_paused(True))
        logger.info("Recurring task paused id=%s", task_id)
        return task

    def resume(self, task_id: str) -> RecurringTaskEntity:
        # next_occurrence is left alone even when it is already in the past.
        task = self._mutate(task_id, _set_paused(False))
        logger.info("Recurring task resumed id=%s next=%s", task_id, task.next_occurrence.isoformat())
        return task

    def complete_cycle(self, task_id: str, completed_by: str | None = None) -> RecurringTaskEntity:
        actor = (completed_by or "").strip() or self._default_completed_by

        def advance(current: RecurringTaskEntity) -> RecurringTaskEntity:
            if current.is_paused:
                logger.warning("Refused cycle completion on paused task id=%s", task_id)
                raise PausedTaskError(task_id)
            if current.schedule_ended:
                logger.warning("Refused cycle completion on ended task id=%s", task_id)
                raise ScheduleEndedError(task_id)

            history = current.completion_history + (
                CompletionRecord(occurred_at=self._clock(), completed_by=actor),
            )
            following = calculate_next_occurrence(current.next_occurrence, current.recurrence_pattern)
            exhausted = current.end_date is not None and following > current.end_date
            return replace(
                current,
                completion_history=history,
                next_occurrence=following,
                status=TaskStatus.COMPLETED if exhausted else TaskStatus.PENDING,
            )

        task = self._mutate(task_id, advance)
        logger.info(
            "Recurring task cycle completed id=%s by=%s cycles=%s next=%s status=%s",
            task_id,
            actor,
            len(task.completion_history),
            task.next_occurrence.isoformat(),
            task.status.value,
        )
        return task

    def update(self, task_id: str, data: dict) -> RecurringTaskEntity:
        changes = self._normalize_fields(data)
        if "title" in changes and not changes["title"]:
            raise ValidationError("title", "title is required")

        def apply(current: RecurringTaskEntity) -> RecurringTaskEntity:
            end_date = changes.get("end_date", current.end_date)
            if end_date is not None and end_date < current.start_date:
                raise ValidationError("end_date", "end date must not be before start date")
            updated = replace(current, **changes)
            # Moving the end date past the next occurrence reopens an exhausted schedule.
            if (
                "end_date" in changes
                and "status" not in changes
                and updated.status == TaskStatus.COMPLETED
                and not updated.schedule_ended
            ):
                updated = replace(updated, status=TaskStatus.PENDING)
            return updated

        task = self._mutate(task_id, apply)
        logger.info("Recurring task updated id=%s fields=%s", task_id, ",".join(sorted(changes)))
        return task

    def stop(self, task_id: str) -> RecurringTaskEntity:
        task = self.get(task_id)
        # A task stopped before it starts still keeps end_date >= start_date.
        end_date = max(self._clock(), task.start_date)
        return self.update(task_id, {"end_date": end_date, "is_paused": True})

    def delete(self, task_id: str, option: DeleteOption | str = DeleteOption.ALL) -> None:
        option = _parse_enum(DeleteOption, option, "option")
        if option is DeleteOption.STOP:
            self.stop(task_id)
            logger.info("Recurring task stopped id=%s", task_id)
            return

        with self._exclusive(task_id):
            if not self._store.delete(task_id):
                raise NotFoundError(task_id)
        with self._locks_guard:
            self._locks.pop(task_id, None)
        logger.info("Recurring task deleted id=%s", task_id)

    # ---- internals ----

    @contextmanager
    def _exclusive(self, task_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(task_id, threading.Lock())
        with lock:
            yield

    def _mutate(
        self,
        task_id: str,
        change: Callable[[RecurringTaskEntity], RecurringTaskEntity | None],
    ) -> RecurringTaskEntity:
        with self._exclusive(task_id):
            current = self.get(task_id)
            updated = change(current)
            if updated is None:
                return current
            updated = replace(updated, updated_at=self._clock())
            return self._store.save(updated, expected_version=current.version)

    def _normalize_fields(self, data: dict) -> dict[str, Any]:
        normalized = dict(data)
        if "title" in normalized:
            title = str(normalized["title"] or "").strip()
            if len(title) > TITLE_MAX_LENGTH:
                raise ValidationError("title", f"title must be at most {TITLE_MAX_LENGTH} characters")
            normalized["title"] = title
        if "description" in normalized:
            description = str(normalized["description"] or "")
            if len(description) > DESCRIPTION_MAX_LENGTH:
                raise ValidationError(
                    "description", f"description must be at most {DESCRIPTION_MAX_LENGTH} characters"
                )
            normalized["description"] = description
        if "recurrence_pattern" in normalized:
            normalized["recurrence_pattern"] = parse_pattern(normalized["recurrence_pattern"])
        if "priority" in normalized:
            normalized["priority"] = _parse_enum(TaskPriority, normalized["priority"], "priority")
        if "status" in normalized:
            normalized["status"] = _parse_enum(TaskStatus, normalized["status"], "status")
        if "assignees" in normalized:
            normalized["assignees"] = tuple(str(item) for item in normalized["assignees"] or ())
        if "end_date" in normalized:
            normalized["end_date"] = _optional_datetime(normalized["end_date"])
        if "is_paused" in normalized:
            normalized["is_paused"] = bool(normalized["is_paused"])
        for key in ("category", "team_id"):
            if key in normalized:
                normalized[key] = normalized[key] or None

        unknown = set(normalized) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "unknown field")
        return normalized


def _set_paused(paused: bool) -> Callable[[RecurringTaskEntity], RecurringTaskEntity | None]:
    def change(current: RecurringTaskEntity) -> RecurringTaskEntity | None:
        if current.is_paused == paused:
            return None
        return replace(current, is_paused=paused)

    return change


def _parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"must be one of: {allowed}") from None


def _as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    raise ValidationError("date", f"expected a date or datetime, got {type(value).__name__}")


def _optional_datetime(value: date | None) -> datetime | None:
    return None if value is None else _as_datetime(value)
