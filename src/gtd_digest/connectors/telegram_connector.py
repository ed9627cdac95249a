# src/gtd_digest/connectors/telegram_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import httpx

from ..core.errors import SendError
from ..core.ports import InboundMessage
from ..tasks.composer import render_html

logger = logging.getLogger(__name__)


class TelegramTransport:
    """
    Telegram Bot API over plain HTTPS.

    - send_text: sendMessage (parse_mode=HTML) to the configured chat
    - acknowledge: sendMessage replying to the inbound message
    - receive: getUpdates long polling; text messages from the configured chat only
    """

    renderer = staticmethod(render_html)

    def __init__(
            self,
            *,
            token: str,
            chat_id: int,
            api_url: str = "https://api.telegram.org",
            poll_timeout: int = 30,
            retry_delay_seconds: float = 5.0,
            timeout: float = 30.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        self._chat_id = chat_id
        self._poll_timeout = max(0, int(poll_timeout))
        self._retry_delay = max(0.0, float(retry_delay_seconds))
        self._offset: int | None = None
        self._own_client = client is None
        if client is None:
            # Read timeout must outlast the long-poll window.
            client = httpx.AsyncClient(
                base_url=f"{api_url.rstrip('/')}/bot{token}",
                timeout=httpx.Timeout(timeout, read=timeout + self._poll_timeout),
            )
        self._client = client

    async def close(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            resp = await self._client.post(f"/{method}", json=payload)
        except httpx.HTTPError as e:
            raise SendError(None, f"{method}: {e!r}") from e

        try:
            data = resp.json()
        except ValueError:
            raise SendError(resp.status_code, f"{method}: non-JSON reply {resp.text[:200]!r}") from None

        if not isinstance(data, dict) or not data.get("ok"):
            code = data.get("error_code", resp.status_code) if isinstance(data, dict) else resp.status_code
            desc = data.get("description", "") if isinstance(data, dict) else str(data)
            raise SendError(int(code), f"{method}: {desc}")
        return data.get("result")

    async def send_text(self, text: str) -> None:
        await self._call(
            "sendMessage",
            {"chat_id": self._chat_id, "text": text, "parse_mode": "HTML"},
        )
        logger.info("Telegram message sent to chat %s (%d chars)", self._chat_id, len(text))

    async def acknowledge(self, message: InboundMessage, text: str) -> None:
        payload: dict[str, Any] = {"chat_id": int(message.chat_id), "text": text}
        if message.message_id:
            payload["reply_parameters"] = {"message_id": int(message.message_id)}
        await self._call("sendMessage", payload)

    def _to_inbound(self, update: dict[str, Any]) -> InboundMessage | None:
        msg = update.get("message")
        if not isinstance(msg, dict):
            return None
        text = msg.get("text")
        chat = msg.get("chat") or {}
        if not isinstance(text, str) or not text.strip():
            return None
        if chat.get("id") != self._chat_id:
            logger.warning("Ignoring message from foreign chat %s", chat.get("id"))
            return None

        sender = (msg.get("from") or {}).get("username")
        sent_at = msg.get("date")
        received_at = (
            datetime.fromtimestamp(int(sent_at)).astimezone() if sent_at else datetime.now().astimezone()
        )
        return InboundMessage(
            text=text,
            received_at=received_at,
            chat_id=str(chat.get("id")),
            message_id=str(msg.get("message_id", "")),
            sender=sender,
        )

    async def poll_once(self) -> list[InboundMessage]:
        payload: dict[str, Any] = {"timeout": self._poll_timeout, "allowed_updates": ["message"]}
        if self._offset is not None:
            payload["offset"] = self._offset

        updates = await self._call("getUpdates", payload)
        out: list[InboundMessage] = []
        for update in updates or []:
            if not isinstance(update, dict):
                continue
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self._offset = update_id + 1
            inbound = self._to_inbound(update)
            if inbound is not None:
                out.append(inbound)
        return out

    async def receive(self, queue: asyncio.Queue[InboundMessage]) -> None:
        logger.info("Telegram polling started (chat=%s).", self._chat_id)
        while True:
            try:
                messages = await self.poll_once()
            except SendError as e:
                logger.error("Telegram getUpdates failed: %s", e)
                await asyncio.sleep(self._retry_delay)
                continue

            for message in messages:
                await queue.put(message)
