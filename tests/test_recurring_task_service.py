from __future__ import annotations

from datetime import date, datetime

import pytest

from recurring_tasks.domain.enums import DeleteOption, RecurrencePattern, TaskPriority, TaskStatus
from recurring_tasks.domain.errors import (
    InvalidPatternError,
    NotFoundError,
    PausedTaskError,
    ScheduleEndedError,
    ValidationError,
)
from recurring_tasks.domain.filters import RecurringTaskFilters
from recurring_tasks.services.recurring_task_service import RecurringTaskService


def _create(service: RecurringTaskService, **overrides):
    data = {
        "title": "Payroll filing",
        "description": "Submit monthly payroll",
        "recurrence_pattern": RecurrencePattern.MONTHLY,
        "start_date": datetime(2024, 1, 31, 9, 0),
    }
    data.update(overrides)
    return service.create(data)


def test_create_initialises_lifecycle_fields(service: RecurringTaskService) -> None:
    task = _create(service, assignees=["emp-1", "emp-2"], team_id="team-7", priority="high")

    assert task.is_paused is False
    assert task.completion_history == ()
    assert task.status is TaskStatus.PENDING
    assert task.priority is TaskPriority.HIGH
    assert task.assignees == ("emp-1", "emp-2")
    assert task.team_id == "team-7"
    # Future start date is its own first occurrence.
    assert task.next_occurrence == datetime(2024, 1, 31, 9, 0)
    assert service.get_by_id(task.id) == task


def test_create_rolls_past_start_date_forward(service: RecurringTaskService, clock) -> None:
    clock.now = datetime(2024, 3, 15, 12, 0)

    task = _create(service, start_date=datetime(2024, 1, 15, 9, 0))

    assert task.start_date == datetime(2024, 1, 15, 9, 0)
    assert task.next_occurrence == datetime(2024, 4, 15, 9, 0)


def test_create_accepts_explicit_next_occurrence_and_plain_dates(service: RecurringTaskService) -> None:
    task = _create(
        service,
        start_date=date(2024, 2, 1),
        next_occurrence=date(2024, 2, 5),
        end_date=date(2024, 12, 31),
    )

    assert task.start_date == datetime(2024, 2, 1, 0, 0)
    assert task.next_occurrence == datetime(2024, 2, 5, 0, 0)
    assert task.end_date == datetime(2024, 12, 31, 0, 0)


@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"recurrence_pattern": "yearly"}, InvalidPatternError),
        ({"recurrence_pattern": None}, InvalidPatternError),
        ({"title": "   "}, ValidationError),
        ({"title": "x" * 201}, ValidationError),
        ({"start_date": None}, ValidationError),
        ({"end_date": datetime(2024, 1, 1)}, ValidationError),
        ({"priority": "critical"}, ValidationError),
        ({"completion_history": []}, ValidationError),
    ],
)
def test_create_rejects_bad_input(service: RecurringTaskService, store, overrides, error) -> None:
    with pytest.raises(error):
        _create(service, **overrides)

    assert store.list(RecurringTaskFilters()) == []


def test_pause_then_complete_cycle_is_refused_without_changes(service: RecurringTaskService) -> None:
    task = _create(service)
    paused = service.pause(task.id)

    with pytest.raises(PausedTaskError):
        service.complete_cycle(task.id, "emp-1")

    after = service.get(task.id)
    assert after.next_occurrence == paused.next_occurrence
    assert len(after.completion_history) == 0
    assert after.version == paused.version


def test_pause_and_resume_are_idempotent_and_keep_next_occurrence(
    service: RecurringTaskService, clock
) -> None:
    task = _create(service)

    paused = service.pause(task.id)
    assert paused.is_paused is True
    assert service.pause(task.id).version == paused.version

    clock.now = datetime(2024, 6, 1, 8, 0)
    resumed = service.resume(task.id)
    assert resumed.is_paused is False
    # Stale occurrences are not recalculated on resume.
    assert resumed.next_occurrence == task.next_occurrence
    assert service.resume(task.id).version == resumed.version


def test_complete_cycle_appends_history_and_advances(service: RecurringTaskService, clock) -> None:
    task = _create(service)

    first = service.complete_cycle(task.id, "emp-1")
    clock.advance(days=30)
    second = service.complete_cycle(task.id, "emp-2")

    assert first.next_occurrence == datetime(2024, 2, 29, 9, 0)
    assert second.next_occurrence == datetime(2024, 3, 29, 9, 0)
    assert [record.completed_by for record in second.completion_history] == ["emp-1", "emp-2"]
    assert second.completion_history[0].occurred_at == datetime(2024, 1, 1, 8, 0)
    assert second.completion_history[1].occurred_at == datetime(2024, 1, 31, 8, 0)
    assert second.completion_history[:1] == first.completion_history


def test_complete_cycle_defaults_actor(store, clock) -> None:
    service = RecurringTaskService(store, clock=clock, default_completed_by="scheduler")
    task = _create(service)

    completed = service.complete_cycle(task.id, "  ")

    assert completed.completion_history[-1].completed_by == "scheduler"


def test_missing_task_raises_not_found(service: RecurringTaskService) -> None:
    assert service.get_by_id("missing") is None
    for call in (
        lambda: service.get("missing"),
        lambda: service.pause("missing"),
        lambda: service.resume("missing"),
        lambda: service.complete_cycle("missing", "emp-1"),
        lambda: service.update("missing", {"title": "New"}),
        lambda: service.delete("missing", DeleteOption.ALL),
        lambda: service.delete("missing", DeleteOption.STOP),
    ):
        with pytest.raises(NotFoundError):
            call()


def test_delete_all_removes_task(service: RecurringTaskService) -> None:
    task = _create(service)
    service.complete_cycle(task.id, "emp-1")

    service.delete(task.id, DeleteOption.ALL)

    assert service.get_by_id(task.id) is None
    with pytest.raises(NotFoundError):
        service.delete(task.id, "all")


def test_delete_stop_keeps_task_and_history(service: RecurringTaskService, clock) -> None:
    task = _create(service, start_date=datetime(2024, 1, 1, 9, 0), category="tax")
    service.complete_cycle(task.id, "emp-1")
    before = service.complete_cycle(task.id, "emp-2")
    clock.now = datetime(2024, 2, 10, 17, 0)

    service.delete(task.id, "stop")

    stopped = service.get_by_id(task.id)
    assert stopped is not None
    assert stopped.is_paused is True
    assert stopped.end_date == datetime(2024, 2, 10, 17, 0)
    assert stopped.completion_history == before.completion_history
    assert stopped.title == before.title
    assert stopped.category == "tax"
    assert stopped.next_occurrence == before.next_occurrence


def test_stopped_task_stays_terminal_after_resume(service: RecurringTaskService, clock) -> None:
    task = _create(service, start_date=datetime(2024, 1, 1, 9, 0))
    service.complete_cycle(task.id, "emp-1")
    clock.now = datetime(2024, 1, 10, 8, 0)
    service.stop(task.id)

    service.resume(task.id)

    with pytest.raises(ScheduleEndedError):
        service.complete_cycle(task.id, "emp-1")
    assert len(service.get(task.id).completion_history) == 1


def test_stop_before_start_keeps_end_after_start(service: RecurringTaskService) -> None:
    task = _create(service, start_date=datetime(2025, 1, 1, 9, 0))

    stopped = service.stop(task.id)

    assert stopped.end_date == stopped.start_date


def test_delete_rejects_unknown_option(service: RecurringTaskService) -> None:
    task = _create(service)

    with pytest.raises(ValidationError):
        service.delete(task.id, "archive")

    assert service.get_by_id(task.id) is not None


def test_end_date_exhausts_schedule(service: RecurringTaskService) -> None:
    task = _create(
        service,
        recurrence_pattern="daily",
        start_date=datetime(2024, 1, 10, 9, 0),
        end_date=datetime(2024, 1, 11, 12, 0),
    )

    first = service.complete_cycle(task.id, "emp-1")
    assert first.next_occurrence == datetime(2024, 1, 11, 9, 0)
    assert first.status is TaskStatus.PENDING

    last = service.complete_cycle(task.id, "emp-1")
    assert last.status is TaskStatus.COMPLETED
    assert last.next_occurrence == datetime(2024, 1, 12, 9, 0)
    assert len(last.completion_history) == 2

    with pytest.raises(ScheduleEndedError):
        service.complete_cycle(task.id, "emp-1")
    assert len(service.get(task.id).completion_history) == 2


def test_extending_end_date_reopens_exhausted_schedule(service: RecurringTaskService) -> None:
    task = _create(
        service,
        recurrence_pattern="daily",
        start_date=datetime(2024, 1, 10, 9, 0),
        end_date=datetime(2024, 1, 10, 12, 0),
    )
    ended = service.complete_cycle(task.id, "emp-1")
    assert ended.status is TaskStatus.COMPLETED

    reopened = service.update(task.id, {"end_date": datetime(2024, 12, 31)})

    assert reopened.status is TaskStatus.PENDING
    assert reopened.schedule_ended is False
    resumed = service.complete_cycle(task.id, "emp-2")
    assert resumed.status is TaskStatus.PENDING
    assert resumed.next_occurrence == datetime(2024, 1, 12, 9, 0)
    assert len(resumed.completion_history) == 2


def test_shortening_end_date_keeps_completed_status(service: RecurringTaskService) -> None:
    task = _create(
        service,
        recurrence_pattern="daily",
        start_date=datetime(2024, 1, 10, 9, 0),
        end_date=datetime(2024, 1, 10, 12, 0),
    )
    service.complete_cycle(task.id, "emp-1")

    updated = service.update(task.id, {"end_date": datetime(2024, 1, 10, 18, 0)})

    assert updated.status is TaskStatus.COMPLETED
    with pytest.raises(ScheduleEndedError):
        service.complete_cycle(task.id, "emp-1")


def test_status_does_not_end_open_schedule(service: RecurringTaskService) -> None:
    task = _create(service)
    service.update(task.id, {"status": "completed"})

    completed = service.complete_cycle(task.id, "emp-1")

    assert completed.status is TaskStatus.PENDING
    assert completed.next_occurrence == datetime(2024, 2, 29, 9, 0)
    assert len(completed.completion_history) == 1
    assert service.get(task.id).schedule_ended is False


def test_update_edits_fields_without_touching_history(service: RecurringTaskService) -> None:
    task = _create(service)
    completed = service.complete_cycle(task.id, "emp-1")

    updated = service.update(
        task.id,
        {
            "title": "Payroll filing (Q)",
            "recurrence_pattern": "quarterly",
            "assignees": ["emp-9"],
            "team_id": "team-2",
            "priority": TaskPriority.URGENT,
            "status": "in_progress",
        },
    )

    assert updated.title == "Payroll filing (Q)"
    assert updated.recurrence_pattern is RecurrencePattern.QUARTERLY
    assert updated.assignees == ("emp-9",)
    assert updated.team_id == "team-2"
    assert updated.priority is TaskPriority.URGENT
    assert updated.status is TaskStatus.IN_PROGRESS
    assert updated.completion_history == completed.completion_history
    assert updated.next_occurrence == completed.next_occurrence

    advanced = service.complete_cycle(task.id, "emp-9")
    assert advanced.next_occurrence == datetime(2024, 5, 29, 9, 0)


@pytest.mark.parametrize(
    ("changes", "error"),
    [
        ({"recurrence_pattern": "fortnightly"}, InvalidPatternError),
        ({"end_date": datetime(2023, 12, 31)}, ValidationError),
        ({"next_occurrence": datetime(2030, 1, 1)}, ValidationError),
        ({"start_date": datetime(2030, 1, 1)}, ValidationError),
        ({"completion_history": ()}, ValidationError),
        ({"title": ""}, ValidationError),
        ({"status": "done"}, ValidationError),
    ],
)
def test_update_rejects_bad_input(service: RecurringTaskService, changes, error) -> None:
    task = _create(service)

    with pytest.raises(error):
        service.update(task.id, changes)

    assert service.get(task.id) == task


def test_list_tasks_filters_and_orders(service: RecurringTaskService) -> None:
    later = _create(service, title="Audit prep", start_date=datetime(2024, 3, 1, 9, 0), category="audit")
    sooner = _create(service, title="Payroll", start_date=datetime(2024, 2, 1, 9, 0), team_id="team-1")
    paused = _create(service, title="Inventory", start_date=datetime(2024, 1, 20, 9, 0))
    service.pause(paused.id)

    assert [task.id for task in service.list_tasks()] == [paused.id, sooner.id, later.id]
    assert [task.id for task in service.list_tasks(RecurringTaskFilters(is_paused=False))] == [
        sooner.id,
        later.id,
    ]
    assert [task.id for task in service.list_tasks(RecurringTaskFilters(category="audit"))] == [later.id]
    assert [task.id for task in service.list_tasks(RecurringTaskFilters(team_id="team-1"))] == [sooner.id]
    assert [task.id for task in service.list_tasks(RecurringTaskFilters(search="AUDIT"))] == [later.id]
    assert len(service.list_tasks(RecurringTaskFilters(limit=2))) == 2


def test_list_due_skips_paused_and_ended(service: RecurringTaskService) -> None:
    due = _create(service, start_date=datetime(2024, 1, 5, 9, 0))
    paused = _create(service, start_date=datetime(2024, 1, 6, 9, 0))
    service.pause(paused.id)
    _create(service, start_date=datetime(2024, 3, 1, 9, 0))
    ended = _create(
        service,
        recurrence_pattern="weekly",
        start_date=datetime(2024, 1, 2, 9, 0),
        end_date=datetime(2024, 1, 3, 9, 0),
    )
    service.complete_cycle(ended.id, "emp-1")

    assert [task.id for task in service.list_due(datetime(2024, 2, 1))] == [due.id]


def test_completion_rate(service: RecurringTaskService) -> None:
    task = _create(
        service,
        recurrence_pattern="daily",
        start_date=datetime(2024, 1, 1, 9, 0),
        next_occurrence=datetime(2024, 1, 5, 9, 0),
    )
    assert service.completion_rate(task.id) == 0.0

    service.complete_cycle(task.id, "emp-1")

    assert service.completion_rate(task.id) == pytest.approx(20.0)


def test_completion_rate_without_elapsed_cycles(service: RecurringTaskService) -> None:
    task = _create(service)

    assert service.completion_rate(task.id) == 0.0


def test_upcoming_preview(service: RecurringTaskService) -> None:
    task = _create(
        service,
        recurrence_pattern="weekly",
        start_date=datetime(2024, 1, 1, 9, 0),
        end_date=datetime(2024, 1, 16, 0, 0),
    )

    assert service.upcoming(task.id) == [
        datetime(2024, 1, 1, 9, 0),
        datetime(2024, 1, 8, 9, 0),
        datetime(2024, 1, 15, 9, 0),
    ]
    assert service.upcoming(task.id, count=1) == [datetime(2024, 1, 1, 9, 0)]
    assert service.upcoming(task.id, count=0) == []
