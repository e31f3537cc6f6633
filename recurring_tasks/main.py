from __future__ import annotations

import logging
import sys

from recurring_tasks.config import SETTINGS
from recurring_tasks.infra.db import init_db
from recurring_tasks.infra.logging import setup_logging
from recurring_tasks.infra.repository import RecurringTaskRepository
from recurring_tasks.services.recurring_task_service import RecurringTaskService

logger = logging.getLogger("recurring_tasks.main")


def build_service() -> RecurringTaskService:
    return RecurringTaskService(
        RecurringTaskRepository(),
        default_completed_by=SETTINGS.default_completed_by,
        preview_count=SETTINGS.upcoming_preview_count,
    )


def report_due(service: RecurringTaskService) -> int:
    due = service.list_due()
    logger.info("Recurring tasks due: %s", len(due))
    for task in due:
        upcoming = ", ".join(occurrence.isoformat() for occurrence in service.upcoming(task.id))
        logger.info(
            "due id=%s title=%r pattern=%s next=%s upcoming=[%s]",
            task.id,
            task.title,
            task.recurrence_pattern.value,
            task.next_occurrence.isoformat(),
            upcoming,
        )
    return len(due)


def main() -> None:
    setup_logging()
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.error("DB error: %s", exc)
        sys.exit(1)

    report_due(build_service())


if __name__ == "__main__":
    main()
