# src/gtd_digest/connectors/github_source.py

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import httpx

from ..core.errors import FetchError

logger = logging.getLogger(__name__)

TASK_FILE_SUFFIX = ".md"


class GithubContentSource:
    """
    Task files stored in a GitHub repository, read through the contents API.

    A collection is a directory at the repository root; every `*.md` file in it
    is one task. Bodies come back base64-encoded (with line breaks) and are
    decoded to text here.
    """

    def __init__(
            self,
            *,
            repo: str,
            token: str = "",
            user: str = "",
            api_url: str = "https://api.github.com",
            ref: str = "",
            timeout: float = 30.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        self._repo = repo.strip("/")
        self._ref = ref
        self._own_client = client is None
        if client is None:
            headers = {"Accept": "application/vnd.github+json"}
            auth: httpx.Auth | None = None
            if user and token:
                auth = httpx.BasicAuth(user, token)
            elif token:
                headers["Authorization"] = f"Bearer {token}"
            client = httpx.AsyncClient(
                base_url=api_url,
                headers=headers,
                auth=auth,
                timeout=httpx.Timeout(timeout),
            )
        self._client = client

    async def close(self) -> None:
        if self._own_client:
            await self._client.aclose()

    def _contents_path(self, path: str) -> str:
        return f"/repos/{self._repo}/contents/{path.strip('/')}"

    async def _get_json(self, path: str, collection: str) -> Any:
        params = {"ref": self._ref} if self._ref else None
        try:
            resp = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise FetchError(collection, f"GET {path}: {e!r}") from e

        if not resp.is_success:
            raise FetchError(collection, f"GET {path}: HTTP {resp.status_code} {resp.text[:200]!r}")
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(collection, f"GET {path}: invalid JSON {resp.text[:200]!r}") from e

    async def fetch_collection(self, name: str) -> list[str]:
        listing = await self._get_json(self._contents_path(name), name)
        if not isinstance(listing, list):
            raise FetchError(name, f"expected a directory listing, got {type(listing).__name__}")

        bodies: list[str] = []
        for entry in listing:
            if not isinstance(entry, dict):
                continue
            if entry.get("type") != "file" or not str(entry.get("name", "")).endswith(TASK_FILE_SUFFIX):
                continue

            path = str(entry.get("path") or f"{name}/{entry['name']}")
            content = await self._get_json(self._contents_path(path), name)
            bodies.append(self._decode(content, path, name))

        logger.info("Fetched %d task files from %s/%s", len(bodies), self._repo, name)
        return bodies

    @staticmethod
    def _decode(content: Any, path: str, collection: str) -> str:
        if not isinstance(content, dict) or not isinstance(content.get("content"), str):
            raise FetchError(collection, f"{path}: no file content in response")
        if content.get("encoding", "base64") != "base64":
            raise FetchError(collection, f"{path}: unsupported encoding {content.get('encoding')!r}")

        packed = "".join(content["content"].split("\n"))
        try:
            return base64.b64decode(packed, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise FetchError(collection, f"{path}: cannot decode content: {e}") from e
