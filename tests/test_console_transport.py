# tests/test_console_transport.py

from __future__ import annotations

import asyncio
import io

import pytest

from gtd_digest.connectors.console_connector import ConsoleTransport


@pytest.mark.asyncio
async def test_lines_become_messages_until_exit() -> None:
    stdin = io.StringIO("paid rent\n\n   \nwatered plants\n/exit\nnever read\n")
    transport = ConsoleTransport(stdin=stdin, stdout=io.StringIO())
    queue: asyncio.Queue = asyncio.Queue()

    await asyncio.wait_for(transport.receive(queue), 2.0)

    messages = [queue.get_nowait() for _ in range(queue.qsize())]
    assert [m.text for m in messages] == ["paid rent", "watered plants"]
    assert [m.message_id for m in messages] == ["1", "2"]


@pytest.mark.asyncio
async def test_eof_closes_stream() -> None:
    transport = ConsoleTransport(stdin=io.StringIO(""), stdout=io.StringIO())
    queue: asyncio.Queue = asyncio.Queue()

    await asyncio.wait_for(transport.receive(queue), 2.0)

    assert queue.empty()


@pytest.mark.asyncio
async def test_send_and_acknowledge_print_to_stdout() -> None:
    out = io.StringIO()
    transport = ConsoleTransport(stdin=io.StringIO(""), stdout=out)

    await transport.send_text("📆 Today is 10 March 2024")

    assert "📆 Today is 10 March 2024" in out.getvalue()
