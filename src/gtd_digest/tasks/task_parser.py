# src/gtd_digest/tasks/task_parser.py

from __future__ import annotations

"""
Task file parser.

A task file is markdown. The first line is the title (heading markers allowed).
Calendar files additionally carry their date either as labeled lines:

    # Dentist
    Date: 05.03.2024
    Period: 6m

or as a front-matter block:

    ---
    title: Dentist
    date: 05.03.2024
    ---

`Until:` / `Deadline:` (or `until` / `deadline` keys) mark an open deadline that
has already passed, which makes the record delayed.

parse() is pure: same input, same result, no I/O.
"""

import re
from datetime import date
from typing import Any

import yaml

from ..core.errors import ParseError, ParseErrorKind
from .task_models import Period, PeriodUnit, TaskKind, TaskRecord

DATE_FORMAT = "%d.%m.%Y"

_DATE_RE = re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$")
_PERIOD_RE = re.compile(r"^(\d+)\s*([dwmy])$", re.IGNORECASE)
_LABEL_RE = re.compile(
    r"^\s*(?P<label>date|until|deadline|period)\s*:\s*(?P<value>.*?)\s*$",
    re.IGNORECASE,
)
_FRONT_MATTER_FENCE = "---"
_FRONT_MATTER_END = {"---", "..."}

# Labels that mark an overdue, still-open deadline.
_DEADLINE_LABELS = ("until", "deadline")


def parse_date(text: str) -> date:
    """Parse DD.MM.YYYY into a date; anything else is MALFORMED_DATE."""
    m = _DATE_RE.match(text.strip())
    if not m:
        raise ParseError(ParseErrorKind.MALFORMED_DATE, f"expected DD.MM.YYYY, got {text!r}")
    day, month, year = (int(g) for g in m.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ParseError(ParseErrorKind.MALFORMED_DATE, f"{text!r}: {e}") from e


def parse_period(text: str) -> Period:
    m = _PERIOD_RE.match(text.strip())
    if not m or int(m.group(1)) < 1:
        raise ParseError(ParseErrorKind.MALFORMED_PERIOD, f"expected <N><d|w|m|y>, got {text!r}")
    return Period(count=int(m.group(1)), unit=PeriodUnit(m.group(2).lower()))


def clean_title(line: str) -> str:
    return line.strip().lstrip("#").strip()


def _split_front_matter(lines: list[str]) -> tuple[dict[str, Any] | None, list[str], str | None]:
    """
    Returns (front_matter, body_lines, yaml_error).

    front_matter is None when the file does not start with a fence or the
    fence is never closed (the whole text is then the body).
    """
    if not lines or lines[0].strip() != _FRONT_MATTER_FENCE:
        return None, lines, None

    for idx in range(1, len(lines)):
        if lines[idx].strip() in _FRONT_MATTER_END:
            block = "\n".join(lines[1:idx])
            body = lines[idx + 1 :]
            try:
                data = yaml.safe_load(block)
            except yaml.YAMLError as e:
                return {}, body, str(e)
            if data is None:
                data = {}
            if not isinstance(data, dict):
                return {}, body, "front matter is not a mapping"
            return {str(k).strip().lower(): v for k, v in data.items()}, body, None

    return None, lines, None


def _meta_date(value: Any) -> date:
    # Only DD.MM.YYYY is accepted; YAML turns ISO dates into date objects, which are rejected.
    if isinstance(value, str):
        return parse_date(value)
    raise ParseError(ParseErrorKind.MALFORMED_DATE, f"unsupported date value {value!r}")


def _scan_labels(lines: list[str]) -> dict[str, str]:
    """First occurrence of each metadata label, lowercased."""
    found: dict[str, str] = {}
    for line in lines:
        m = _LABEL_RE.match(line)
        if not m:
            continue
        found.setdefault(m.group("label").lower(), m.group("value"))
    return found


def _title_from(front_matter: dict[str, Any] | None, body: list[str], lines: list[str]) -> str:
    if front_matter is None:
        first = lines[0] if lines else ""
        return clean_title(first)

    meta_title = front_matter.get("title")
    if meta_title is not None and str(meta_title).strip():
        return str(meta_title).strip()
    for line in body:
        if line.strip():
            return clean_title(line)
    return ""


def parse(raw: str, kind: TaskKind) -> TaskRecord:
    """
    Turn one raw task file into a TaskRecord.

    Raises ParseError (MISSING_TITLE, MISSING_DATE, MALFORMED_DATE, MALFORMED_PERIOD).
    """
    lines = raw.lstrip("\ufeff").splitlines()
    front_matter, body, yaml_error = _split_front_matter(lines)

    title = _title_from(front_matter, body, lines)
    if not title:
        raise ParseError(ParseErrorKind.MISSING_TITLE, "first line is empty")

    if kind == TaskKind.BACKLOG:
        return TaskRecord(title=title)

    if yaml_error is not None:
        raise ParseError(ParseErrorKind.MISSING_DATE, f"unreadable front matter: {yaml_error}")

    meta = front_matter or {}
    # Title line itself never carries metadata.
    labels = _scan_labels(body[1:] if front_matter is None else body)

    deadline: date | None = None
    for key in _DEADLINE_LABELS:
        if meta.get(key) is not None:
            deadline = _meta_date(meta[key])
            break
        if key in labels:
            deadline = parse_date(labels[key])
            break

    planned: date | None = None
    if meta.get("date") is not None:
        planned = _meta_date(meta["date"])
    elif "date" in labels:
        planned = parse_date(labels["date"])

    period: Period | None = None
    if meta.get("period") is not None:
        period = parse_period(str(meta["period"]))
    elif "period" in labels:
        period = parse_period(labels["period"])

    if deadline is not None:
        return TaskRecord(title=title, due=deadline, delayed=True, period=period)
    if planned is not None:
        return TaskRecord(title=title, due=planned, delayed=False, period=period)

    raise ParseError(ParseErrorKind.MISSING_DATE, "no Date:/Until: line or front-matter date")
