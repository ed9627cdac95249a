# tests/test_bootstrap.py

from __future__ import annotations

import pytest

from gtd_digest.cli.bootstrap import (
    build_scheduler,
    create_content_source,
    create_initial_state,
    create_transport,
    resolve_timezone,
    shutdown,
)
from gtd_digest.connectors.console_connector import ConsoleTransport
from gtd_digest.connectors.github_source import GithubContentSource
from gtd_digest.connectors.local_source import LocalDirectorySource
from gtd_digest.connectors.telegram_connector import TelegramTransport
from gtd_digest.core.errors import ConfigError
from gtd_digest.tasks.task_scheduler import DispatchScheduler


def test_resolve_timezone() -> None:
    assert resolve_timezone(None) is None
    assert resolve_timezone("UTC").key == "UTC"
    with pytest.raises(ConfigError):
        resolve_timezone("Mars/Olympus_Mons")


def test_content_source_selection(settings) -> None:
    assert isinstance(create_content_source(settings), LocalDirectorySource)

    settings.content_backend = "github"
    with pytest.raises(ConfigError):
        create_content_source(settings)

    settings.github_repo = "me/gtd"
    assert isinstance(create_content_source(settings), GithubContentSource)

    settings.content_backend = "s3"
    with pytest.raises(ConfigError):
        create_content_source(settings)


@pytest.mark.asyncio
async def test_transport_selection(settings) -> None:
    assert isinstance(await create_transport(settings), ConsoleTransport)

    settings.transport = "telegram"
    with pytest.raises(ConfigError):
        await create_transport(settings)

    settings.telegram_token = "TOKEN"
    settings.telegram_chat_id = 42
    transport = await create_transport(settings)
    assert isinstance(transport, TelegramTransport)
    await transport.close()

    settings.transport = "carrier-pigeon"
    with pytest.raises(ConfigError):
        await create_transport(settings)


@pytest.mark.asyncio
async def test_initial_state_wires_scheduler(settings) -> None:
    state = await create_initial_state(settings=settings)

    assert settings.data_dir.is_dir()
    assert state.done_log.path == settings.done_log_path
    assert state.plan.calendar_collection == "calendar"

    scheduler = build_scheduler(state)
    assert isinstance(scheduler, DispatchScheduler)
    await shutdown(state)


@pytest.mark.asyncio
async def test_scheduler_requires_transport(settings) -> None:
    state = await create_initial_state(settings=settings, with_transport=False)

    with pytest.raises(ConfigError):
        build_scheduler(state)
