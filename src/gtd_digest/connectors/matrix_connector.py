# src/gtd_digest/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any

from nio import AsyncClient, MatrixRoom, RoomMessageText, RoomSendError

from ..core.errors import ConfigError, SendError
from ..core.ports import InboundMessage
from ..tasks.composer import render_plain
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)


def _ms_now() -> int:
    return int(time.time() * 1000)


class MatrixTransport:
    """
    Matrix room as the chat endpoint.

    Digests go to one configured room; replies in that room (from anyone but the
    bot itself, sent after startup) become inbound messages.
    """

    renderer = staticmethod(render_plain)

    def __init__(
            self,
            client: AsyncClient,
            *,
            room_id: str,
            sync_timeout_ms: int = 30000,
            retry_delay_seconds: float = 5.0,
    ) -> None:
        self._client = client
        self._room_id = room_id
        self._sync_timeout_ms = sync_timeout_ms
        self._retry_delay = retry_delay_seconds
        self._startup_ts = _ms_now()
        self._queue: asyncio.Queue[InboundMessage] | None = None

    @classmethod
    async def connect(cls, settings) -> MatrixTransport:
        if not settings.matrix_room:
            raise ConfigError("GTD_MATRIX_ROOM is required for the matrix transport")
        client = await create_matrix_client(
            homeserver=settings.matrix_homeserver,
            user_id=settings.matrix_user_id,
            password=settings.matrix_password,
            store_dir=settings.matrix_store_path,
            device_name=f"{settings.app_name} (Python)",
        )
        if client is None:
            raise ConfigError("Matrix client creation failed")
        return cls(client, room_id=settings.matrix_room)

    async def close(self) -> None:
        await self._client.close()

    async def _room_send(self, content: dict[str, Any]) -> None:
        try:
            resp = await self._client.room_send(
                room_id=self._room_id,
                message_type="m.room.message",
                content=content,
                ignore_unverified_devices=True,
            )
        except Exception as e:
            raise SendError(None, f"room_send: {e!r}") from e
        if isinstance(resp, RoomSendError):
            raise SendError(resp.status_code, resp.message)

    async def send_text(self, text: str) -> None:
        await self._room_send({"msgtype": "m.text", "body": text})
        logger.info("Matrix message sent to %s (%d chars)", self._room_id, len(text))

    async def acknowledge(self, message: InboundMessage, text: str) -> None:
        content: dict[str, Any] = {"msgtype": "m.notice", "body": text}
        if message.message_id:
            content["m.relates_to"] = {"m.in_reply_to": {"event_id": message.message_id}}
        await self._room_send(content)

    async def receive(self, queue: asyncio.Queue[InboundMessage]) -> None:
        client = self._client

        async def on_message(room: MatrixRoom, event: RoomMessageText) -> None:
            # Ignore history from before startup and our own messages.
            ts = getattr(event, "server_timestamp", None)
            if ts is not None and ts <= self._startup_ts:
                return
            if event.sender == client.user_id or room.room_id != self._room_id:
                return
            body = (event.body or "").strip()
            if not body:
                return

            received_at = (
                datetime.fromtimestamp(ts / 1000).astimezone() if ts else datetime.now().astimezone()
            )
            await self._queue.put(  # type: ignore[union-attr]
                InboundMessage(
                    text=body,
                    received_at=received_at,
                    chat_id=room.room_id,
                    message_id=event.event_id,
                    sender=event.sender,
                )
            )

        # receive() may be restarted; the callback is registered once and feeds the latest queue.
        first_start = self._queue is None
        self._queue = queue
        if first_start:
            client.add_event_callback(on_message, RoomMessageText)

        logger.info("Matrix initial sync...")
        await client.sync(timeout=self._sync_timeout_ms, full_state=True)
        logger.info("Matrix sync loop started (room=%s).", self._room_id)

        while True:
            try:
                await client.sync(timeout=self._sync_timeout_ms, full_state=False)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Matrix sync failed; retrying")
                await asyncio.sleep(self._retry_delay)
