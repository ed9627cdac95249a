# src/gtd_digest/tasks/digest.py

from __future__ import annotations

"""
One digest cycle: fetch -> parse -> classify -> compose.

Parse policy is skip-and-continue: a record that fails to parse is logged and
dropped, the rest of the collection is still used. A FetchError from the
content source propagates and abandons the cycle before anything is composed.
"""

import logging
import random
from dataclasses import dataclass
from datetime import date

from ..core.errors import ParseError
from ..core.ports import ContentSource
from .classifier import DEFAULT_SAMPLE_SIZE, classify
from .composer import LABELS_EN, DigestLabels, compose_message, get_labels
from .task_models import DigestMessage, TaskKind, TaskRecord
from .task_parser import parse

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DigestPlan:
    """What to fetch and how to present it."""

    calendar_collection: str = "calendar"
    backlog_collection: str = "next_actions"
    sample_size: int = DEFAULT_SAMPLE_SIZE
    labels: DigestLabels = LABELS_EN

    @classmethod
    def from_settings(cls, settings) -> DigestPlan:
        return cls(
            calendar_collection=settings.calendar_collection,
            backlog_collection=settings.backlog_collection,
            sample_size=int(settings.sample_size),
            labels=get_labels(settings.locale),
        )


def _first_line(raw: str) -> str:
    line = raw.strip().splitlines()[0] if raw.strip() else ""
    return line[:80]


async def collect_records(source: ContentSource, collection: str, kind: TaskKind) -> list[TaskRecord]:
    bodies = await source.fetch_collection(collection)

    records: list[TaskRecord] = []
    for raw in bodies:
        try:
            records.append(parse(raw, kind))
        except ParseError as e:
            logger.warning("Skipping %s record %r: %s", collection, _first_line(raw), e)

    logger.debug("Collection %s: %d files, %d records", collection, len(bodies), len(records))
    return records


async def build_digest(
        source: ContentSource,
        today: date,
        *,
        rng: random.Random,
        plan: DigestPlan | None = None,
) -> DigestMessage:
    plan = plan or DigestPlan()

    # Sequential on purpose: collections are small.
    calendar = await collect_records(source, plan.calendar_collection, TaskKind.CALENDAR)
    backlog = await collect_records(source, plan.backlog_collection, TaskKind.BACKLOG)

    digest = classify([*calendar, *backlog], today, rng=rng, sample_size=plan.sample_size)
    logger.info(
        "Digest for %s: today=%d delayed=%d options=%d (backlog=%d)",
        today.isoformat(),
        len(digest.today),
        len(digest.delayed),
        len(digest.backlog_sample),
        len(backlog),
    )
    return compose_message(digest, today, labels=plan.labels)
