# src/gtd_digest/storage/done_log.py

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from ..core.errors import DoneLogError

logger = logging.getLogger(__name__)

# RFC 1123, e.g. "Tue, 05 Mar 2024 06:00:00 CET"
_RFC1123 = "%a, %d %b %Y %H:%M:%S %Z"


def format_log_line(text: str, at: datetime) -> str:
    """One log line: timestamp, colon, the message text flattened to a single line."""
    flat = text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
    stamp = at.strftime(_RFC1123).rstrip()
    return f"{stamp}: {flat}"


class FileDoneLog:
    """
    Append-only text log of replies (one line per inbound message).

    Each append opens the file, writes and closes it again, so the file is never
    held open between messages and is flushed on every exit path.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, line: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_APPEND | os.O_WRONLY | os.O_CREAT, 0o600)
            with os.fdopen(fd, "a", encoding="utf-8", errors="backslashreplace") as f:
                f.write(line.rstrip("\n") + "\n")
        except (OSError, UnicodeError) as e:
            raise DoneLogError(self._path, str(e)) from e
        logger.debug("Appended %d chars to %s", len(line), self._path)
