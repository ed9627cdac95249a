# src/gtd_digest/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- takes the settings object built once by the entrypoint,
- ensures local (gitignored) directories exist,
- wires concrete implementations (content source, transport, done log, RNG)
  into AppState,
- builds the scheduler from AppState.
"""

from __future__ import annotations

import logging
import random
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import get_settings
from ..connectors.console_connector import ConsoleTransport
from ..connectors.github_source import GithubContentSource
from ..connectors.local_source import LocalDirectorySource
from ..connectors.telegram_connector import TelegramTransport
from ..core.errors import ConfigError
from ..core.ports import ChatTransport, ContentSource
from ..core.state import AppState
from ..storage.done_log import FileDoneLog
from ..tasks.digest import DigestPlan
from ..tasks.task_scheduler import DispatchScheduler, system_clock

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.done_log_path.parent.mkdir(parents=True, exist_ok=True)


def resolve_timezone(name: str | None) -> tzinfo | None:
    """None means the system local zone."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone {name!r}") from e


def create_content_source(settings) -> ContentSource:
    backend = settings.content_backend
    if backend == "github":
        if not settings.github_repo:
            raise ConfigError("GTD_GITHUB_REPO is required for the github content backend")
        return GithubContentSource(
            repo=settings.github_repo,
            token=settings.github_token,
            user=settings.github_user,
            api_url=settings.github_api_url,
            ref=settings.github_ref,
            timeout=settings.http_timeout_seconds,
        )
    if backend == "local":
        return LocalDirectorySource(settings.local_root)
    raise ConfigError(f"Unknown content backend {backend!r} (expected github or local)")


async def create_transport(settings) -> ChatTransport:
    name = settings.transport
    if name == "telegram":
        if not settings.telegram_token or settings.telegram_chat_id is None:
            raise ConfigError("GTD_TELEGRAM_TOKEN and GTD_TELEGRAM_CHAT_ID are required for telegram")
        return TelegramTransport(
            token=settings.telegram_token,
            chat_id=settings.telegram_chat_id,
            api_url=settings.telegram_api_url,
            poll_timeout=settings.telegram_poll_timeout,
            timeout=settings.http_timeout_seconds,
        )
    if name == "matrix":
        # nio is only imported when Matrix is actually used.
        from ..connectors.matrix_connector import MatrixTransport

        return await MatrixTransport.connect(settings)
    if name == "console":
        return ConsoleTransport()
    raise ConfigError(f"Unknown transport {name!r} (expected telegram, matrix or console)")


async def create_initial_state(*, settings=None, with_transport: bool = True) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    tz = resolve_timezone(settings.timezone)
    rng = random.Random(settings.random_seed)
    source = create_content_source(settings)
    transport = await create_transport(settings) if with_transport else None

    logger.info(
        "Wired content=%s transport=%s digest_hour=%02d tz=%s",
        settings.content_backend,
        settings.transport if with_transport else "-",
        settings.digest_hour,
        settings.timezone or "local",
    )
    return AppState(
        settings=settings,
        source=source,
        done_log=FileDoneLog(settings.done_log_path),
        rng=rng,
        plan=DigestPlan.from_settings(settings),
        tz=tz,
        transport=transport,
    )


def build_scheduler(state: AppState) -> DispatchScheduler:
    if state.transport is None:
        raise ConfigError("Scheduler needs a chat transport")
    settings = state.settings
    return DispatchScheduler(
        source=state.source,
        transport=state.transport,
        done_log=state.done_log,
        rng=state.rng,
        plan=state.plan,
        hour=settings.digest_hour,  # type: ignore[attr-defined]
        ack_text=settings.ack_text,  # type: ignore[attr-defined]
        clock=system_clock(state.tz),
    )


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for name, obj in (("transport", state.transport), ("content source", state.source)):
        close = getattr(obj, "close", None)
        if close is None:
            continue
        try:
            await close()
        except Exception:
            logger.debug("Closing %s failed.", name, exc_info=True)

    logger.info("Shutdown complete.")
