# src/gtd_digest/tasks/task_scheduler.py

"""
Dispatch scheduler.

One long-lived loop that waits on whichever fires first:
- the daily timer (configured local hour) -> run one digest cycle and send it,
- the inbound message queue -> append the text to the done log and acknowledge.

Guarantees:
- at most one digest per local calendar day; the next deadline is always the
  next occurrence of the hour strictly after "now", computed after the cycle,
- an inbound message never delays or disarms the timer (the timer wait stays
  pending while messages are handled),
- fetch/send failures abandon the current cycle only; done-log failures and
  inbound stream errors never end the loop.

Message formatting and routing belong to the transport, not the scheduler.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum

from ..core.errors import DoneLogError, FetchError, SendError
from ..core.ports import ChatTransport, ContentSource, DoneLog, InboundMessage
from ..storage.done_log import format_log_line
from .digest import DigestPlan, build_digest
from .task_models import DigestMessage

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]

# Upper bound for a single wait; the remaining time is recomputed after each chunk.
MAX_SLEEP_CHUNK_SECONDS = 300.0


class SchedulerState(str, Enum):
    IDLE = "idle"
    AWAITING_NEXT_TICK = "awaiting_next_tick"


def next_deadline(now: datetime, hour: int) -> datetime:
    """Next `hour:00` local wall time strictly after `now` (same tzinfo as `now`)."""
    candidate = datetime.combine(now.date(), time(hour=hour), tzinfo=now.tzinfo)
    if candidate <= now:
        candidate = datetime.combine(now.date() + timedelta(days=1), time(hour=hour), tzinfo=now.tzinfo)
    return candidate


def system_clock(tz: tzinfo | None = None) -> Clock:
    """Aware clock for an explicit zone; naive local wall time (DST-following) otherwise."""

    def _now() -> datetime:
        if tz is None:
            return datetime.now()
        return datetime.now(tz)

    return _now


class DispatchScheduler:
    def __init__(
            self,
            *,
            source: ContentSource,
            transport: ChatTransport,
            done_log: DoneLog,
            rng: random.Random,
            plan: DigestPlan | None = None,
            hour: int = 6,
            ack_text: str = "noted",
            restart_delay_seconds: float = 5.0,
            clock: Clock | None = None,
            sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if not 0 <= hour <= 23:
            raise ValueError(f"hour must be in 0..23, got {hour}")
        self._source = source
        self._transport = transport
        self._done_log = done_log
        self._rng = rng
        self._plan = plan or DigestPlan()
        self._hour = hour
        self._ack_text = ack_text
        self._restart_delay = max(0.0, float(restart_delay_seconds))
        self._clock = clock or system_clock()
        self._sleep = sleep

        self._stop = asyncio.Event()
        self.state = SchedulerState.IDLE
        self.deadline: datetime | None = None
        self.last_digest_day: date | None = None

    def stop(self) -> None:
        self._stop.set()

    # ---- timer ----

    def _arm(self) -> datetime:
        self.deadline = next_deadline(self._clock(), self._hour)
        self.state = SchedulerState.AWAITING_NEXT_TICK
        logger.info("Next digest at %s", self.deadline.isoformat())
        return self.deadline

    async def _sleep_until(self, deadline: datetime) -> None:
        while True:
            remaining = (deadline - self._clock()).total_seconds()
            if remaining <= 0:
                return
            await self._sleep(min(remaining, MAX_SLEEP_CHUNK_SECONDS))

    # ---- handlers ----

    async def run_cycle(self, today: date) -> DigestMessage:
        """
        fetch -> parse -> classify -> compose -> send.

        Raises FetchError / SendError; nothing is sent unless the whole digest was built.
        """
        message = await build_digest(self._source, today, rng=self._rng, plan=self._plan)
        await self._transport.send_text(self._transport.renderer(message))
        logger.info("Digest for %s sent (%d sections)", today.isoformat(), len(message.sections))
        return message

    async def _on_timer(self) -> None:
        today = self._clock().date()
        if self.last_digest_day == today:
            logger.warning("Digest for %s already dispatched; skipping tick", today.isoformat())
            return

        # Marked before the attempt: a failed cycle is not retried the same day.
        self.last_digest_day = today
        try:
            await self.run_cycle(today)
        except FetchError as e:
            logger.error("Digest cycle abandoned, fetch failed: %s", e)
        except SendError as e:
            logger.error("Digest cycle abandoned, send failed: %s", e)
        except Exception:
            logger.exception("Digest cycle crashed")

    async def handle_inbound(self, message: InboundMessage) -> None:
        line = format_log_line(message.text, message.received_at)
        try:
            await asyncio.to_thread(self._done_log.append, line)
            logger.info("Logged reply from chat %s (%d chars)", message.chat_id, len(message.text))
        except DoneLogError as e:
            # The sender still gets an ack; the operator sees the failure here.
            logger.error("Failed to log reply from chat %s: %s", message.chat_id, e)
        except Exception:
            logger.exception("Done log append crashed for message %s", message.message_id)

        try:
            await self._transport.acknowledge(message, self._ack_text)
        except SendError as e:
            logger.error("Failed to acknowledge message %s: %s", message.message_id, e)
        except Exception:
            logger.exception("Acknowledge crashed for message %s", message.message_id)

    # ---- loop ----

    async def _receive_after(self, queue: asyncio.Queue[InboundMessage], delay: float) -> None:
        await asyncio.sleep(delay)
        await self._transport.receive(queue)

    async def run(self) -> None:
        """
        Serve both event sources until stop() is called or the inbound stream closes.

        A producer that fails is restarted after `restart_delay_seconds`; only a
        clean end of stream (console EOF, /exit) ends the loop.

        All helper tasks (timer wait, queue wait, inbound producer) are cancelled
        and awaited before returning.
        """
        queue: asyncio.Queue[InboundMessage] = asyncio.Queue()
        producer = asyncio.create_task(self._transport.receive(queue), name="inbound-producer")
        stopper = asyncio.create_task(self._stop.wait(), name="scheduler-stop")
        timer = asyncio.create_task(self._sleep_until(self._arm()), name="digest-timer")
        getter = asyncio.create_task(queue.get(), name="inbound-get")

        try:
            while True:
                done, _ = await asyncio.wait(
                    {timer, getter, producer, stopper},
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if getter in done:
                    await self.handle_inbound(getter.result())
                    getter = asyncio.create_task(queue.get(), name="inbound-get")

                if timer in done:
                    timer.result()
                    self.state = SchedulerState.IDLE
                    await self._on_timer()
                    timer = asyncio.create_task(self._sleep_until(self._arm()), name="digest-timer")

                if stopper in done:
                    logger.info("Scheduler stop requested")
                    break

                if producer in done:
                    exc = producer.exception()
                    if exc is not None:
                        # Only a clean end of stream stops the loop; the timer stays armed.
                        logger.error(
                            "Inbound stream failed; restarting in %.0fs: %r", self._restart_delay, exc
                        )
                        producer = asyncio.create_task(
                            self._receive_after(queue, self._restart_delay), name="inbound-producer"
                        )
                        continue

                    logger.info("Inbound stream closed")
                    # Messages already queued are still logged.
                    getter.cancel()
                    try:
                        pending = await getter
                    except asyncio.CancelledError:
                        pending = None
                    if pending is not None:
                        await self.handle_inbound(pending)
                    while not queue.empty():
                        await self.handle_inbound(queue.get_nowait())
                    break
        finally:
            for task in (timer, getter, producer, stopper):
                task.cancel()
            for task in (timer, getter, producer, stopper):
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
            self.state = SchedulerState.IDLE
            logger.info("Scheduler stopped")
