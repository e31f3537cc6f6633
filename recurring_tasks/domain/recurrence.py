from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TypeVar

from .enums import RecurrencePattern
from .errors import InvalidPatternError

# Works for both ``date`` and ``datetime``; time-of-day and tzinfo ride along
# untouched because every step either adds a timedelta or calls ``replace``.
D = TypeVar("D", bound=date)

_DESCRIPTIONS = {
    RecurrencePattern.DAILY: "Every day",
    RecurrencePattern.WEEKLY: "Every week",
    RecurrencePattern.MONTHLY: "Every month",
    RecurrencePattern.QUARTERLY: "Every 3 months",
}


def parse_pattern(value: RecurrencePattern | str) -> RecurrencePattern:
    if isinstance(value, RecurrencePattern):
        return value
    try:
        return RecurrencePattern(value)
    except ValueError:
        raise InvalidPatternError(value) from None


def daily(current: D) -> D:
    return current + timedelta(days=1)


def weekly(current: D) -> D:
    return current + timedelta(days=7)


def monthly(current: D) -> D:
    return add_months(current, 1)


def quarterly(current: D) -> D:
    return add_months(current, 3)


_STEPS = {
    RecurrencePattern.DAILY: daily,
    RecurrencePattern.WEEKLY: weekly,
    RecurrencePattern.MONTHLY: monthly,
    RecurrencePattern.QUARTERLY: quarterly,
}


def calculate_next_occurrence(current: D, pattern: RecurrencePattern | str) -> D:
    """Return the occurrence that follows ``current`` under ``pattern``.

    Raises InvalidPatternError for anything outside the four known patterns.
    """
    return _STEPS[parse_pattern(pattern)](current)


def add_months(base: D, months: int) -> D:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return base.replace(year=year, month=month, day=day)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def next_occurrences(start: D, pattern: RecurrencePattern | str, count: int) -> list[D]:
    """The first ``count`` occurrences, beginning with ``start`` itself."""
    if count < 0:
        raise ValueError("count must not be negative")
    step = _STEPS[parse_pattern(pattern)]
    occurrences: list[D] = []
    current = start
    for _ in range(count):
        occurrences.append(current)
        current = step(current)
    return occurrences


def occurrences_between(start: D, end: D, pattern: RecurrencePattern | str) -> list[D]:
    """Every occurrence ``o`` with ``start <= o <= end``."""
    step = _STEPS[parse_pattern(pattern)]
    occurrences: list[D] = []
    current = start
    while current <= end:
        occurrences.append(current)
        current = step(current)
    return occurrences


def count_occurrences(start: D, end: D, pattern: RecurrencePattern | str) -> int:
    return len(occurrences_between(start, end, pattern))


def first_occurrence_on_or_after(start: D, pattern: RecurrencePattern | str, moment: D) -> D:
    step = _STEPS[parse_pattern(pattern)]
    current = start
    while current < moment:
        current = step(current)
    return current


def is_occurrence_date(candidate: date, start: date, pattern: RecurrencePattern | str) -> bool:
    """Whether ``candidate`` falls on the pattern's calendar anchored at ``start``.

    Monthly and quarterly dates keep the start's day of month, clamped to the
    month's length, so a Jan 31 start matches Feb 29 and Mar 31 but not Mar 29.
    """
    pattern = parse_pattern(pattern)
    target = _as_date(candidate)
    origin = _as_date(start)
    days = (target - origin).days
    if days < 0:
        return False
    if pattern is RecurrencePattern.DAILY:
        return True
    if pattern is RecurrencePattern.WEEKLY:
        return days % 7 == 0
    months = (target.year - origin.year) * 12 + target.month - origin.month
    step = 3 if pattern is RecurrencePattern.QUARTERLY else 1
    if months % step:
        return False
    return target.day == min(origin.day, days_in_month(target.year, target.month))


def describe_pattern(pattern: RecurrencePattern | str) -> str:
    return _DESCRIPTIONS[parse_pattern(pattern)]


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
