# src/gtd_digest/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs one of:
- run: the daily digest scheduler with the configured chat transport (default),
- preview: one digest cycle printed to stdout, nothing is sent,
- periods: recurring calendar entries and their next dates.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import random
import signal
from datetime import date, datetime

from ..cli.bootstrap import build_scheduler, create_initial_state, shutdown
from ..config import get_settings
from ..core.errors import ConfigError, FetchError
from ..logging_setup import setup_logging
from ..tasks.composer import render_plain
from ..tasks.digest import build_digest, collect_records
from ..tasks.periods import upcoming
from ..tasks.task_models import TaskKind
from ..tasks.task_parser import DATE_FORMAT

logger = logging.getLogger(__name__)


def _parse_iso_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {raw!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gtd-digest", description="Daily task digest bot.")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the daily digest scheduler (default).")

    preview = sub.add_parser("preview", help="Build one digest and print it without sending.")
    preview.add_argument("--date", type=_parse_iso_date, default=None, help="Digest date (YYYY-MM-DD).")
    preview.add_argument("--seed", type=int, default=None, help="Seed for the backlog sample.")

    sub.add_parser("periods", help="List recurring calendar entries and their next dates.")
    return parser


async def _run(settings) -> int:
    state = await create_initial_state(settings=settings)
    try:
        scheduler = build_scheduler(state)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not supported on every platform (e.g. Windows event loops).
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, scheduler.stop)

        await scheduler.run()
    finally:
        await shutdown(state)
    return 0


async def _preview(settings, day: date | None, seed: int | None) -> int:
    state = await create_initial_state(settings=settings, with_transport=False)
    try:
        today = day or datetime.now(state.tz).date()
        rng = random.Random(seed) if seed is not None else state.rng
        message = await build_digest(state.source, today, rng=rng, plan=state.plan)
        print(render_plain(message))
        return 0
    except FetchError as e:
        logger.error("Preview failed: %s", e)
        return 1
    finally:
        await shutdown(state)


async def _periods(settings) -> int:
    state = await create_initial_state(settings=settings, with_transport=False)
    try:
        records = await collect_records(state.source, state.plan.calendar_collection, TaskKind.CALENDAR)
        for record, next_due in upcoming(records):
            assert record.due is not None
            print(
                f"{record.title}: {record.due.strftime(DATE_FORMAT)} "
                f"+{record.period} -> {next_due.strftime(DATE_FORMAT)}"
            )
        return 0
    except FetchError as e:
        logger.error("Listing periods failed: %s", e)
        return 1
    finally:
        await shutdown(state)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    # keep noisy libs readable
    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    command = args.command or "run"
    logger.info("Starting %s (%s)...", settings.app_name, command)

    try:
        if command == "preview":
            return asyncio.run(_preview(settings, args.date, args.seed))
        if command == "periods":
            return asyncio.run(_periods(settings))
        return asyncio.run(_run(settings))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    raise SystemExit(main())
