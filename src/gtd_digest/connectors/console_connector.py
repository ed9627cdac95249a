# src/gtd_digest/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from datetime import datetime
from typing import TextIO

from ..core.ports import InboundMessage
from ..tasks.composer import render_plain

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleTransport:
    """
    Local terminal as the chat endpoint (for trying things out).

    Digests are printed to stdout; every stdin line is an inbound message.
    EOF or /exit closes the inbound stream, which stops the scheduler.
    """

    renderer = staticmethod(render_plain)

    def __init__(self, *, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._counter = 0

    def _print(self, text: str) -> None:
        print(f"[{_ts_local()}] {text}", file=self._stdout, flush=True)

    async def send_text(self, text: str) -> None:
        self._print(f"<<<\n{text}\n")

    async def acknowledge(self, message: InboundMessage, text: str) -> None:
        self._print(f"<<< {text}")

    async def close(self) -> None:
        return

    async def receive(self, queue: asyncio.Queue[InboundMessage]) -> None:
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[str | None] = asyncio.Queue()

        # Reading stdin blocks; a daemon thread never keeps the process alive on shutdown.
        def push(item: str | None) -> None:
            # The loop may already be closed when stdin ends after shutdown.
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(lines.put_nowait, item)

        def reader() -> None:
            try:
                for raw in self._stdin:
                    push(raw.rstrip("\n"))
            except Exception:
                logger.exception("Console reader crashed.")
            finally:
                push(None)

        threading.Thread(target=reader, name="console-reader", daemon=True).start()
        logger.info("Console connector started. Type a note; /exit to quit.")

        while True:
            line = await lines.get()
            if line is None:
                logger.info("Console EOF received, exiting.")
                return

            text = line.strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                logger.info("Console exit command received.")
                return

            self._counter += 1
            await queue.put(
                InboundMessage(
                    text=text,
                    received_at=datetime.now().astimezone(),
                    chat_id="console",
                    message_id=str(self._counter),
                    sender=None,
                )
            )
