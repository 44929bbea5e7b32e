"""Occurrence generation for recurring schedules.

Weekdays follow the scheduler UI convention: 0 = Sunday ... 6 = Saturday.
Occurrences keep the time of day of ``start``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import count as counter
from typing import Iterator

from dateutil.relativedelta import relativedelta

from communication_service.domain.value_objects.enums import RecurrenceFrequency

MAX_OCCURRENCES = 100
DEFAULT_HORIZON = relativedelta(months=6)


@dataclass(frozen=True, slots=True)
class RecurrenceRule:
    frequency: RecurrenceFrequency
    interval: int = 1
    days_of_week: tuple[int, ...] = ()
    count: int | None = None
    end_date: datetime | None = None

    def __post_init__(self) -> None:
        if self.interval < 1:
            raise ValueError("interval must be >= 1")
        if any(d < 0 or d > 6 for d in self.days_of_week):
            raise ValueError("days_of_week must be between 0 (Sunday) and 6 (Saturday)")
        if self.count is not None and self.count < 1:
            raise ValueError("count must be >= 1")


def weekday_index(dt: datetime) -> int:
    """Python weekday (Mon=0) to scheduler weekday (Sun=0)."""
    return (dt.weekday() + 1) % 7


def generate_occurrences(
    start: datetime,
    rule: RecurrenceRule,
    *,
    limit: int = MAX_OCCURRENCES,
    horizon: relativedelta | None = None,
) -> list[datetime]:
    if rule.end_date is not None and (rule.end_date.tzinfo is None) != (start.tzinfo is None):
        raise ValueError("start and end_date must both be naive or both be timezone-aware")

    cap = min(rule.count, limit) if rule.count is not None else limit
    until = rule.end_date
    if until is None and rule.count is None:
        until = start + (horizon or DEFAULT_HORIZON)

    occurrences: list[datetime] = []
    if cap < 1:
        return occurrences
    for candidate in _candidates(start, rule):
        if until is not None and candidate > until:
            break
        occurrences.append(candidate)
        if len(occurrences) >= cap:
            break
    return occurrences


def _candidates(start: datetime, rule: RecurrenceRule) -> Iterator[datetime]:
    if rule.frequency == RecurrenceFrequency.DAILY:
        for n in counter():
            yield start + relativedelta(days=n * rule.interval)

    elif rule.frequency == RecurrenceFrequency.MONTHLY:
        # offset from start each time so a 31st does not drift to the 28th
        for n in counter():
            yield start + relativedelta(months=n * rule.interval)

    elif rule.frequency == RecurrenceFrequency.WEEKLY:
        days = sorted(set(rule.days_of_week)) or [weekday_index(start)]
        week_start = start - timedelta(days=weekday_index(start))
        for n in counter():
            base = week_start + relativedelta(weeks=n * rule.interval)
            for day in days:
                candidate = base + timedelta(days=day)
                if candidate >= start:
                    yield candidate

    else:
        raise ValueError(f"Unsupported frequency: {rule.frequency}")
