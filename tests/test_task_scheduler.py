# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from gtd_digest.core.ports import InboundMessage
from gtd_digest.storage.done_log import FileDoneLog
from gtd_digest.tasks.task_scheduler import (
    DispatchScheduler,
    SchedulerState,
    next_deadline,
    system_clock,
)

from .fakes import (
    FakeClock,
    FakeContentSource,
    FakeTransport,
    MemoryDoneLog,
    inbound,
    sleep_forever,
    utc,
)

CALENDAR = {"calendar": ["# Dentist\nDate: 09.03.2024\n"], "next_actions": ["# Read a book\n"]}


async def _until(cond: Callable[[], bool], timeout: float = 5.0) -> None:
    async def _poll() -> None:
        while not cond():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)


async def _stop(scheduler: DispatchScheduler, runner: asyncio.Task) -> None:
    scheduler.stop()
    await asyncio.wait_for(runner, 2.0)


def _scheduler(
        *,
        source: FakeContentSource | None = None,
        transport: FakeTransport | None = None,
        done_log=None,
        clock: Callable[[], datetime],
        sleep,
        restart_delay_seconds: float = 5.0,
) -> DispatchScheduler:
    return DispatchScheduler(
        source=source or FakeContentSource(CALENDAR),
        transport=transport or FakeTransport(),
        done_log=done_log or MemoryDoneLog(),
        rng=random.Random(5),
        hour=6,
        restart_delay_seconds=restart_delay_seconds,
        clock=clock,
        sleep=sleep,
    )


def test_next_deadline_is_strictly_after_now() -> None:
    assert next_deadline(utc(2024, 3, 10, 5, 59), 6) == utc(2024, 3, 10, 6, 0)
    assert next_deadline(utc(2024, 3, 10, 6, 0), 6) == utc(2024, 3, 11, 6, 0)
    assert next_deadline(utc(2024, 3, 10, 6, 0, 1), 6) == utc(2024, 3, 11, 6, 0)
    assert next_deadline(utc(2024, 12, 31, 23, 0), 0) == utc(2025, 1, 1, 0, 0)


def test_next_deadline_keeps_timezone() -> None:
    tz = timezone(timedelta(hours=3))
    deadline = next_deadline(datetime(2024, 3, 10, 7, 0, tzinfo=tz), 6)
    assert deadline == datetime(2024, 3, 11, 6, 0, tzinfo=tz)
    assert deadline.tzinfo is tz


def test_hour_out_of_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        DispatchScheduler(
            source=FakeContentSource(),
            transport=FakeTransport(),
            done_log=MemoryDoneLog(),
            rng=random.Random(1),
            hour=24,
        )


@pytest.mark.asyncio
async def test_one_digest_per_day_at_configured_hour() -> None:
    clock = FakeClock(utc(2024, 3, 10, 5, 0))
    transport = FakeTransport()
    scheduler = _scheduler(transport=transport, clock=clock, sleep=clock.sleep)

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: len(transport.sent) >= 3)
    await _stop(scheduler, runner)

    titles = [text.splitlines()[0] for text in transport.sent]
    assert titles[:3] == [
        "📆 Today is 10 March 2024",
        "📆 Today is 11 March 2024",
        "📆 Today is 12 March 2024",
    ]
    assert len(set(titles)) == len(titles)
    assert "- (09.03.2024) Dentist" in transport.sent[0]
    assert "- Read a book" in transport.sent[0]
    assert all(seconds <= 300.0 for seconds in clock.sleeps)
    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_inbound_message_is_logged_and_acknowledged() -> None:
    transport = FakeTransport(inbound=[inbound("buy milk\nand bread", message_id="7")])
    done_log = MemoryDoneLog()
    scheduler = _scheduler(
        transport=transport,
        done_log=done_log,
        clock=lambda: utc(2024, 3, 10, 5, 0),
        sleep=sleep_forever,
    )

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: len(transport.acks) == 1)

    assert scheduler.state == SchedulerState.AWAITING_NEXT_TICK
    assert scheduler.deadline == utc(2024, 3, 10, 6, 0)
    await _stop(scheduler, runner)

    assert done_log.lines == ["Sun, 10 Mar 2024 12:00:00 UTC: buy milk and bread"]
    message, text = transport.acks[0]
    assert message.message_id == "7"
    assert text == "noted"
    assert transport.sent == []


@pytest.mark.asyncio
async def test_inbound_messages_do_not_disturb_the_timer() -> None:
    clock = FakeClock(utc(2024, 3, 10, 5, 0))
    transport = FakeTransport(inbound=[inbound("one", "1"), inbound("two", "2")])
    done_log = MemoryDoneLog()
    scheduler = _scheduler(transport=transport, done_log=done_log, clock=clock, sleep=clock.sleep)

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: len(transport.acks) == 2 and len(transport.sent) >= 1)
    await _stop(scheduler, runner)

    assert [line.rsplit(": ", 1)[1] for line in done_log.lines] == ["one", "two"]
    assert transport.sent[0].startswith("📆 Today is 10 March 2024")


@pytest.mark.asyncio
async def test_fetch_failure_abandons_cycle_and_rearms() -> None:
    clock = FakeClock(utc(2024, 3, 10, 5, 0))
    source = FakeContentSource(CALENDAR, failing={"calendar"})
    transport = FakeTransport()
    scheduler = _scheduler(source=source, transport=transport, clock=clock, sleep=clock.sleep)

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: scheduler.last_digest_day == date(2024, 3, 11))
    await _stop(scheduler, runner)

    assert transport.sent == []
    assert source.calls[:2] == ["calendar", "calendar"]


@pytest.mark.asyncio
async def test_send_failure_does_not_stop_the_loop() -> None:
    clock = FakeClock(utc(2024, 3, 10, 5, 0))
    transport = FakeTransport(fail_send=True)
    scheduler = _scheduler(transport=transport, clock=clock, sleep=clock.sleep)

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: scheduler.deadline == utc(2024, 3, 12, 6, 0))

    assert not runner.done()
    assert scheduler.last_digest_day == date(2024, 3, 11)
    await _stop(scheduler, runner)


@pytest.mark.asyncio
async def test_done_log_failure_still_acknowledges() -> None:
    transport = FakeTransport(inbound=[inbound("done: taxes")])
    done_log = MemoryDoneLog(fail=True)
    scheduler = _scheduler(
        transport=transport,
        done_log=done_log,
        clock=lambda: utc(2024, 3, 10, 5, 0),
        sleep=sleep_forever,
    )

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: len(transport.acks) == 1)
    await _stop(scheduler, runner)

    assert done_log.lines == []
    assert transport.acks[0][1] == "noted"


@pytest.mark.asyncio
async def test_closed_inbound_stream_stops_scheduler() -> None:
    transport = FakeTransport(inbound=[inbound("last words")], close_inbound=True)
    done_log = MemoryDoneLog()
    scheduler = _scheduler(
        transport=transport,
        done_log=done_log,
        clock=lambda: utc(2024, 3, 10, 5, 0),
        sleep=sleep_forever,
    )

    await asyncio.wait_for(scheduler.run(), 2.0)

    assert len(done_log.lines) == 1
    assert len(transport.acks) == 1
    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_stop_returns_promptly_while_waiting() -> None:
    scheduler = _scheduler(clock=lambda: utc(2024, 3, 10, 5, 0), sleep=sleep_forever)

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: scheduler.state == SchedulerState.AWAITING_NEXT_TICK)
    await _stop(scheduler, runner)

    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_already_dispatched_day_is_skipped() -> None:
    source = FakeContentSource(CALENDAR)
    transport = FakeTransport()
    scheduler = _scheduler(
        source=source,
        transport=transport,
        clock=lambda: utc(2024, 3, 10, 6, 0),
        sleep=sleep_forever,
    )
    scheduler.last_digest_day = date(2024, 3, 10)

    await scheduler._on_timer()

    assert transport.sent == []
    assert source.calls == []


@pytest.mark.asyncio
async def test_run_cycle_sends_rendered_digest() -> None:
    transport = FakeTransport()
    scheduler = _scheduler(transport=transport, clock=lambda: utc(2024, 3, 10, 6, 0), sleep=sleep_forever)

    message = await scheduler.run_cycle(date(2024, 3, 10))

    assert transport.sent == [transport.renderer(message)]


BERLIN = ZoneInfo("Europe/Berlin")


class _WallStampTransport(FakeTransport):
    """Records the wall clock reading at every digest send."""

    def __init__(self, wall: Callable[[], datetime]) -> None:
        super().__init__()
        self.wall = wall
        self.sent_at: list[datetime] = []

    async def send_text(self, text: str) -> None:
        self.sent_at.append(self.wall())
        await super().send_text(text)


class _FlakyInboundTransport(FakeTransport):
    """receive() fails on the first attempt, then delivers its messages."""

    def __init__(self, messages: list[InboundMessage]) -> None:
        super().__init__(inbound=messages)
        self.attempts = 0

    async def receive(self, queue: asyncio.Queue[InboundMessage]) -> None:
        self.attempts += 1
        if self.attempts == 1:
            raise ConnectionError("initial sync failed")
        await super().receive(queue)


class _CrashingDoneLog:
    def append(self, line: str) -> None:
        raise RuntimeError("unexpected")


def test_system_clock_local_is_naive_wall_time() -> None:
    assert system_clock()().tzinfo is None
    assert system_clock(timezone.utc)().tzinfo is timezone.utc


def test_next_deadline_in_zone_follows_dst() -> None:
    deadline = next_deadline(datetime(2024, 3, 30, 7, 0, tzinfo=BERLIN), 6)

    assert deadline == datetime(2024, 3, 31, 6, 0, tzinfo=BERLIN)
    assert deadline.utcoffset() == timedelta(hours=2)


@pytest.mark.asyncio
async def test_local_wall_clock_digest_stays_at_hour_across_dst() -> None:
    # Real time runs in UTC; the scheduler sees naive Berlin wall time.
    clock = FakeClock(utc(2024, 3, 30, 4, 0))

    def wall() -> datetime:
        return clock.now.astimezone(BERLIN).replace(tzinfo=None)

    transport = _WallStampTransport(wall)
    scheduler = _scheduler(transport=transport, clock=wall, sleep=clock.sleep)

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: len(transport.sent_at) >= 3)
    await _stop(scheduler, runner)

    assert transport.sent_at[:3] == [
        datetime(2024, 3, 30, 6, 0),
        datetime(2024, 3, 31, 6, 0),
        datetime(2024, 4, 1, 6, 0),
    ]


@pytest.mark.asyncio
async def test_unencodable_reply_does_not_stop_the_loop(tmp_path: Path) -> None:
    transport = FakeTransport(inbound=[inbound("bad \udcff byte", "1"), inbound("next", "2")])
    done_log = FileDoneLog(tmp_path / "done.md")
    scheduler = _scheduler(
        transport=transport,
        done_log=done_log,
        clock=lambda: utc(2024, 3, 10, 5, 0),
        sleep=sleep_forever,
    )

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: len(transport.acks) == 2)

    assert not runner.done()
    await _stop(scheduler, runner)

    lines = (tmp_path / "done.md").read_text("utf-8").splitlines()
    assert lines == [
        "Sun, 10 Mar 2024 12:00:00 UTC: bad \\udcff byte",
        "Sun, 10 Mar 2024 12:00:00 UTC: next",
    ]


@pytest.mark.asyncio
async def test_unexpected_done_log_error_still_acknowledges() -> None:
    transport = FakeTransport()
    scheduler = _scheduler(
        transport=transport,
        done_log=_CrashingDoneLog(),
        clock=lambda: utc(2024, 3, 10, 5, 0),
        sleep=sleep_forever,
    )

    await scheduler.handle_inbound(inbound("paid rent"))

    assert [text for _, text in transport.acks] == ["noted"]


@pytest.mark.asyncio
async def test_failed_inbound_stream_is_restarted_and_timer_kept() -> None:
    clock = FakeClock(utc(2024, 3, 10, 5, 0))
    transport = _FlakyInboundTransport([inbound("after restart")])
    scheduler = _scheduler(
        transport=transport,
        clock=clock,
        sleep=clock.sleep,
        restart_delay_seconds=0,
    )

    runner = asyncio.create_task(scheduler.run())
    await _until(lambda: len(transport.acks) == 1 and len(transport.sent) >= 1)

    assert not runner.done()
    assert transport.attempts == 2
    await _stop(scheduler, runner)

    assert transport.sent[0].startswith("📆 Today is 10 March 2024")
