# src/gtd_digest/tasks/classifier.py

from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import TypeVar

from .task_models import ClassifiedDigest, TaskRecord

DEFAULT_SAMPLE_SIZE = 3

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Partition:
    """
    Disjoint split of one cycle's records.

    `future` holds dated, not-delayed records that are not due yet; they are
    deliberately left out of the digest.
    """

    today: tuple[TaskRecord, ...]
    delayed: tuple[TaskRecord, ...]
    backlog: tuple[TaskRecord, ...]
    future: tuple[TaskRecord, ...]


def _by_due(record: TaskRecord) -> date:
    assert record.due is not None
    return record.due


def partition(records: Iterable[TaskRecord], today: date) -> Partition:
    due_today: list[TaskRecord] = []
    delayed: list[TaskRecord] = []
    backlog: list[TaskRecord] = []
    future: list[TaskRecord] = []

    for record in records:
        if record.delayed:
            delayed.append(record)
        elif record.due is None:
            backlog.append(record)
        elif record.due <= today:
            due_today.append(record)
        else:
            future.append(record)

    # sorted() is stable: equal dates keep fetch order.
    return Partition(
        today=tuple(sorted(due_today, key=_by_due)),
        delayed=tuple(sorted(delayed, key=_by_due)),
        backlog=tuple(backlog),
        future=tuple(future),
    )


def sample(items: Sequence[T], k: int, rng: random.Random) -> list[T]:
    """
    Up to k items drawn without replacement.

    Every k-subset is equally likely; with k or fewer items all of them are returned.
    """
    if k <= 0:
        return []
    if len(items) <= k:
        return list(items)
    return rng.sample(list(items), k)


def classify(
        records: Iterable[TaskRecord],
        today: date,
        *,
        rng: random.Random,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> ClassifiedDigest:
    parts = partition(records, today)
    return ClassifiedDigest(
        today=parts.today,
        delayed=parts.delayed,
        backlog_sample=tuple(sample(parts.backlog, sample_size, rng)),
    )
