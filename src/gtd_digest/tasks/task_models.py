# src/gtd_digest/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum


class TaskKind(StrEnum):
    """Which collection a raw file came from; decides how it is parsed."""

    CALENDAR = "calendar"
    BACKLOG = "backlog"


class PeriodUnit(StrEnum):
    DAY = "d"
    WEEK = "w"
    MONTH = "m"
    YEAR = "y"


@dataclass(slots=True, frozen=True)
class Period:
    count: int
    unit: PeriodUnit

    def __str__(self) -> str:
        return f"{self.count}{self.unit.value}"


@dataclass(slots=True, frozen=True)
class TaskRecord:
    """
    One task file.

    Invariants:
    - title is non-empty
    - delayed implies due is set (a backlog record is never delayed)
    """

    title: str
    due: date | None = None
    delayed: bool = False
    period: Period | None = None

    def __post_init__(self) -> None:
        if not self.title.strip():
            raise ValueError("TaskRecord.title must be non-empty")
        if self.delayed and self.due is None:
            raise ValueError("delayed TaskRecord must have a due date")

    @property
    def is_backlog(self) -> bool:
        return self.due is None


@dataclass(slots=True, frozen=True)
class ClassifiedDigest:
    """Buckets for one cycle. Rebuilt from scratch every time, never mutated."""

    today: tuple[TaskRecord, ...] = ()
    delayed: tuple[TaskRecord, ...] = ()
    backlog_sample: tuple[TaskRecord, ...] = ()


class SectionKind(StrEnum):
    DUE_TODAY = "due_today"
    DEADLINES = "deadlines"
    OTHER_OPTIONS = "other_options"


@dataclass(slots=True, frozen=True)
class DigestSection:
    kind: SectionKind
    label: str
    lines: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class DigestMessage:
    """Markup-free digest; a renderer maps it to the transport's markup."""

    title: str
    sections: tuple[DigestSection, ...] = ()
