# src/gtd_digest/core/errors.py

"""
Error taxonomy.

ParseError is recoverable per record; FetchError and SendError end the current
cycle; DoneLogError is reported but never stops the loop.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path


class DigestError(Exception):
    """Base class for all gtd_digest errors."""


class ConfigError(DigestError):
    pass


class ParseErrorKind(StrEnum):
    MISSING_TITLE = "missing_title"
    MISSING_DATE = "missing_date"
    MALFORMED_DATE = "malformed_date"
    MALFORMED_PERIOD = "malformed_period"


class ParseError(DigestError):
    def __init__(self, kind: ParseErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class FetchError(DigestError):
    def __init__(self, collection: str, detail: str) -> None:
        self.collection = collection
        self.detail = detail
        super().__init__(f"fetch {collection!r} failed: {detail}")


class SendError(DigestError):
    """
    Delivery failure.

    status_code is the provider's code (HTTP-like int for Telegram, errcode string
    for Matrix) or None when the provider was never reached.
    """

    def __init__(self, status_code: int | str | None, description: str) -> None:
        self.status_code = status_code
        self.description = description
        code = "-" if status_code is None else str(status_code)
        super().__init__(f"send failed [{code}]: {description}")


class DoneLogError(DigestError):
    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"append to {path} failed: {detail}")
