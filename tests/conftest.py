# tests/conftest.py

from __future__ import annotations

import random
from pathlib import Path
from types import SimpleNamespace

import pytest


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="gtd-digest-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        digest_hour=6,
        timezone="UTC",
        sample_size=3,
        random_seed=7,
        locale="en",
        calendar_collection="calendar",
        backlog_collection="next_actions",
        content_backend="local",
        github_repo="",
        github_user="",
        github_token="",
        github_api_url="https://api.github.com",
        github_ref="",
        local_root=tmp_path / "gtd",
        http_timeout_seconds=5.0,
        transport="console",
        telegram_token="",
        telegram_chat_id=None,
        telegram_api_url="https://api.telegram.org",
        telegram_poll_timeout=0,
        matrix_homeserver="",
        matrix_user_id="",
        matrix_password="",
        matrix_room="",
        matrix_store_path=tmp_path / "data" / "matrix_store",
        done_log_path=tmp_path / "data" / "done.md",
        ack_text="noted",
    )


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)
