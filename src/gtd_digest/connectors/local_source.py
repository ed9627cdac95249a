# src/gtd_digest/connectors/local_source.py

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from ..core.errors import FetchError
from .github_source import TASK_FILE_SUFFIX

logger = logging.getLogger(__name__)


class LocalDirectorySource:
    """Task files in a local checkout: <root>/<collection>/*.md."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    def _read_all(self, name: str) -> list[str]:
        directory = self._root / name
        if not directory.is_dir():
            raise FetchError(name, f"{directory} is not a directory")

        bodies: list[str] = []
        try:
            for path in sorted(directory.iterdir()):
                if path.suffix != TASK_FILE_SUFFIX or not path.is_file():
                    continue
                bodies.append(path.read_text("utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise FetchError(name, str(e)) from e

        logger.info("Read %d task files from %s", len(bodies), directory)
        return bodies

    async def fetch_collection(self, name: str) -> list[str]:
        return await asyncio.to_thread(self._read_all, name)

    async def close(self) -> None:
        return
