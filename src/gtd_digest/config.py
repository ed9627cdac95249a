# src/gtd_digest/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app, built explicitly and passed down.
- No secrets required at import time (credentials are checked at bootstrap).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "GTD"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Digest ----
    digest_hour: int
    timezone: Optional[str]
    sample_size: int
    random_seed: Optional[int]
    locale: str
    calendar_collection: str
    backlog_collection: str

    # ---- Content store ----
    content_backend: str
    github_repo: str
    github_user: str
    github_token: str
    github_api_url: str
    github_ref: str
    local_root: Path
    http_timeout_seconds: float

    # ---- Transport ----
    transport: str

    telegram_token: str
    telegram_chat_id: Optional[int]
    telegram_api_url: str
    telegram_poll_timeout: int

    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_room: str
    matrix_store_path: Path

    # ---- Inbound replies ----
    done_log_path: Path
    ack_text: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "gtd-digest").strip() or "gtd-digest"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/gtd"))

        # Hour-of-day is local wall time; out-of-range values are clamped.
        digest_hour = min(23, max(0, _env_int(_k("DIGEST_HOUR"), 6)))
        timezone = _env(_k("TIMEZONE")).strip() or None
        sample_size = max(0, _env_int(_k("SAMPLE_SIZE"), 3))
        random_seed = _env_optional_int(_k("RANDOM_SEED"))
        locale = _env(_k("LOCALE"), "en").strip().lower() or "en"
        calendar_collection = _env(_k("CALENDAR_COLLECTION"), "calendar").strip() or "calendar"
        backlog_collection = _env(_k("BACKLOG_COLLECTION"), "next_actions").strip() or "next_actions"

        content_backend = _env(_k("CONTENT_BACKEND"), "github").strip().lower() or "github"
        github_repo = _env(_k("GITHUB_REPO")).strip()
        github_user = _env(_k("GITHUB_USER")).strip()
        github_token = _env(_k("GITHUB_TOKEN")).strip()
        github_api_url = _env(_k("GITHUB_API_URL"), "https://api.github.com").rstrip("/")
        github_ref = _env(_k("GITHUB_REF")).strip()
        local_root = _env_path(_k("LOCAL_ROOT"), Path("."))
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 30.0))

        transport = _env(_k("TRANSPORT"), "telegram").strip().lower() or "telegram"

        telegram_token = _env(_k("TELEGRAM_TOKEN")).strip()
        telegram_chat_id = _env_optional_int(_k("TELEGRAM_CHAT_ID"))
        telegram_api_url = _env(_k("TELEGRAM_API_URL"), "https://api.telegram.org").rstrip("/")
        telegram_poll_timeout = max(0, _env_int(_k("TELEGRAM_POLL_TIMEOUT"), 30))

        matrix_homeserver = _env(_k("MATRIX_HOMESERVER")).strip()
        matrix_user_id = _env(_k("MATRIX_USER_ID")).strip()
        matrix_password = _env(_k("MATRIX_PASSWORD")).strip()
        matrix_room = _env(_k("MATRIX_ROOM")).strip()
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")

        done_log_path = _env_path(_k("DONE_LOG_PATH"), data_dir / "done.md")
        ack_text = _env(_k("ACK_TEXT"), "noted")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            digest_hour=digest_hour,
            timezone=timezone,
            sample_size=sample_size,
            random_seed=random_seed,
            locale=locale,
            calendar_collection=calendar_collection,
            backlog_collection=backlog_collection,
            content_backend=content_backend,
            github_repo=github_repo,
            github_user=github_user,
            github_token=github_token,
            github_api_url=github_api_url,
            github_ref=github_ref,
            local_root=local_root,
            http_timeout_seconds=http_timeout_seconds,
            transport=transport,
            telegram_token=telegram_token,
            telegram_chat_id=telegram_chat_id,
            telegram_api_url=telegram_api_url,
            telegram_poll_timeout=telegram_poll_timeout,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_room=matrix_room,
            matrix_store_path=matrix_store_path,
            done_log_path=done_log_path,
            ack_text=ack_text,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Real environment variables win over .env entries.
    load_dotenv(override=False)
    return Settings.from_env()
