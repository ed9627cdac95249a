# src/gtd_digest/tasks/composer.py

from __future__ import annotations

"""
Digest composer.

compose_message() turns classified buckets into a markup-free DigestMessage
(title + labeled sections). Renderers map it to a transport's markup:
- render_html: Telegram (parse_mode=HTML)
- render_plain: Matrix, console, previews

Empty buckets produce no section at all.
"""

import html
from dataclasses import dataclass
from datetime import date

from .task_models import ClassifiedDigest, DigestMessage, DigestSection, SectionKind, TaskRecord
from .task_parser import DATE_FORMAT


@dataclass(slots=True, frozen=True)
class DigestLabels:
    title: str  # "{date}" is replaced with the long date
    due_today: str
    deadlines: str
    other_options: str
    months: tuple[str, ...]

    def long_date(self, day: date) -> str:
        return f"{day.day:02d} {self.months[day.month - 1]} {day.year}"


LABELS_EN = DigestLabels(
    title="📆 Today is {date}",
    due_today="🌟 Plans for today:",
    deadlines="⌛ Deadlines:",
    other_options="✨ What else you could do:",
    months=(
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ),
)

LABELS_RU = DigestLabels(
    title="📆 Сегодня {date}",
    due_today="🌟 Планы на сегодня:",
    deadlines="⌛ Дедлайны:",
    other_options="✨ Что еще можно сделать:",
    months=(
        "января", "февраля", "марта", "апреля", "мая", "июня",
        "июля", "августа", "сентября", "октября", "ноября", "декабря",
    ),
)

_LABELS_BY_LOCALE = {"en": LABELS_EN, "ru": LABELS_RU}


def get_labels(locale: str) -> DigestLabels:
    return _LABELS_BY_LOCALE.get((locale or "").strip().lower(), LABELS_EN)


def _dated(record: TaskRecord) -> str:
    assert record.due is not None
    return f"({record.due.strftime(DATE_FORMAT)}) {record.title}"


def compose_message(
        digest: ClassifiedDigest,
        today: date,
        *,
        labels: DigestLabels = LABELS_EN,
) -> DigestMessage:
    sections: list[DigestSection] = []

    if digest.today:
        # Only overdue items get their date; items due exactly today do not.
        lines = tuple(
            _dated(r) if r.due is not None and r.due < today else r.title
            for r in digest.today
        )
        sections.append(DigestSection(SectionKind.DUE_TODAY, labels.due_today, lines))

    if digest.delayed:
        lines = tuple(_dated(r) for r in digest.delayed)
        sections.append(DigestSection(SectionKind.DEADLINES, labels.deadlines, lines))

    if digest.backlog_sample:
        lines = tuple(r.title for r in digest.backlog_sample)
        sections.append(DigestSection(SectionKind.OTHER_OPTIONS, labels.other_options, lines))

    return DigestMessage(
        title=labels.title.format(date=labels.long_date(today)),
        sections=tuple(sections),
    )


def render_plain(message: DigestMessage) -> str:
    blocks = [message.title]
    for section in message.sections:
        blocks.append("\n".join([section.label, *(f"- {line}" for line in section.lines)]))
    return "\n\n".join(blocks)


def render_html(message: DigestMessage) -> str:
    blocks = [f"<b>{html.escape(message.title)}</b>"]
    for section in message.sections:
        head = f"<i>{html.escape(section.label)}</i>"
        items = [f"- {html.escape(line)}" for line in section.lines]
        blocks.append("\n".join([head, *items]))
    return "\n\n".join(blocks)


def compose(
        digest: ClassifiedDigest,
        today: date,
        *,
        labels: DigestLabels = LABELS_EN,
        renderer=render_plain,
) -> str:
    return renderer(compose_message(digest, today, labels=labels))
