# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets: keep tokens and passwords in .env (local, gitignored).

This file lists every variable gtd_digest.config.Settings reads.
"""

ENV_VARS = {
    # App / logging
    "GTD_APP_NAME": "App display name (default: gtd-digest).",
    "GTD_LOG_LEVEL": "Console logging level (default: INFO).",
    "GTD_DATA_DIR": "Local data directory (default: .local/gtd).",
    # Digest
    "GTD_DIGEST_HOUR": "Local hour of the daily digest, 0-23 (default: 6; clamped).",
    "GTD_TIMEZONE": "IANA zone for the digest hour, e.g. Europe/Berlin (default: system local).",
    "GTD_SAMPLE_SIZE": "How many backlog items to suggest (default: 3).",
    "GTD_RANDOM_SEED": "Optional integer seed for reproducible backlog samples.",
    "GTD_LOCALE": "Digest labels: en or ru (default: en).",
    "GTD_CALENDAR_COLLECTION": "Directory with dated tasks (default: calendar).",
    "GTD_BACKLOG_COLLECTION": "Directory with undated next actions (default: next_actions).",
    # Content store
    "GTD_CONTENT_BACKEND": "github or local (default: github).",
    "GTD_GITHUB_REPO": "owner/name of the task repository (required for github).",
    "GTD_GITHUB_USER": "Optional user for basic auth (token alone uses a Bearer header).",
    "GTD_GITHUB_TOKEN": "Personal access token with read access to the repository.",
    "GTD_GITHUB_API_URL": "API root (default: https://api.github.com).",
    "GTD_GITHUB_REF": "Optional branch, tag or commit to read from.",
    "GTD_LOCAL_ROOT": "Checkout root for the local backend (default: current directory).",
    "GTD_HTTP_TIMEOUT_SECONDS": "HTTP timeout for content and Telegram calls (default: 30).",
    # Transport
    "GTD_TRANSPORT": "telegram, matrix or console (default: telegram).",
    "GTD_TELEGRAM_TOKEN": "Bot token from @BotFather.",
    "GTD_TELEGRAM_CHAT_ID": "Chat that receives digests; replies from other chats are ignored.",
    "GTD_TELEGRAM_API_URL": "Bot API root (default: https://api.telegram.org).",
    "GTD_TELEGRAM_POLL_TIMEOUT": "getUpdates long-poll seconds (default: 30).",
    "GTD_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "GTD_MATRIX_USER_ID": "Matrix user ID (bot).",
    "GTD_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "GTD_MATRIX_ROOM": "Room ID that receives digests.",
    "GTD_MATRIX_STORE_PATH": "Matrix session/E2EE store (default: <data_dir>/matrix_store).",
    # Inbound replies
    "GTD_DONE_LOG_PATH": "Append-only log of replies (default: <data_dir>/done.md).",
    "GTD_ACK_TEXT": "Acknowledgement sent for each reply (default: noted).",
}
