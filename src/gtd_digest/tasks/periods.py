# src/gtd_digest/tasks/periods.py

from __future__ import annotations

"""
Recurring calendar entries (`Period: 2w`).

Month/year steps normalize overflowing days into the next month instead of
clamping: 31.01.2023 + 1m is 03.03.2023, 29.02.2024 + 1y is 01.03.2025.
"""

from collections.abc import Iterable
from datetime import date, timedelta

from .task_models import Period, PeriodUnit, TaskRecord


def _normalized(year: int, month: int, day: int) -> date:
    # month may exceed 12, day may exceed the month length.
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


def advance(due: date, period: Period) -> date:
    if period.unit == PeriodUnit.DAY:
        return due + timedelta(days=period.count)
    if period.unit == PeriodUnit.WEEK:
        return due + timedelta(days=7 * period.count)
    if period.unit == PeriodUnit.MONTH:
        return _normalized(due.year, due.month + period.count, due.day)
    return _normalized(due.year + period.count, due.month, due.day)


def upcoming(records: Iterable[TaskRecord]) -> list[tuple[TaskRecord, date]]:
    """(record, next occurrence) for every periodic record, in input order."""
    out: list[tuple[TaskRecord, date]] = []
    for record in records:
        if record.period is None or record.due is None:
            continue
        out.append((record, advance(record.due, record.period)))
    return out
