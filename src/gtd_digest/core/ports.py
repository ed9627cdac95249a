# src/gtd_digest/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the content store and chat transports swappable and makes testing easier.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from ..tasks.task_models import DigestMessage


@dataclass(slots=True, frozen=True)
class InboundMessage:
    """A free-text message received from the chat transport."""

    text: str
    received_at: datetime
    chat_id: str
    message_id: str
    sender: str | None = None


Renderer = Callable[[DigestMessage], str]


class ContentSource(Protocol):
    """
    Remote content store.

    Returns the decoded text body of every task file in the named collection.
    Ordering is arbitrary. Raises FetchError on any failure.
    """

    def fetch_collection(self, name: str) -> Awaitable[list[str]]: ...


class ChatTransport(Protocol):
    """
    Connector-side port: how the scheduler talks to the user.

    The transport decides markup (renderer), chat/room routing and reply threading.
    """

    renderer: Renderer

    def send_text(self, text: str) -> Awaitable[None]: ...

    def acknowledge(self, message: InboundMessage, text: str) -> Awaitable[None]: ...

    def receive(self, queue: asyncio.Queue[InboundMessage]) -> Awaitable[None]:
        """Long-running producer; returns when the inbound stream is closed."""
        ...

    def close(self) -> Awaitable[None]: ...


class DoneLog(Protocol):
    """Durable append-only log. Raises DoneLogError on failure."""

    def append(self, line: str) -> None: ...
