# tests/test_github_source.py

from __future__ import annotations

import base64

import httpx
import pytest

from gtd_digest.connectors.github_source import GithubContentSource
from gtd_digest.core.errors import FetchError


def _b64(text: str) -> str:
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    # The contents API wraps base64 at 60 columns.
    return "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60)) + "\n"


def _source(handler, *, ref: str = "") -> GithubContentSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.github.com")
    return GithubContentSource(repo="me/gtd", ref=ref, client=client)


@pytest.mark.asyncio
async def test_fetches_markdown_files_only() -> None:
    long_body = "# Dentist\nDate: 05.03.2024\n" + "notes " * 40
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        path = request.url.path
        if path == "/repos/me/gtd/contents/calendar":
            return httpx.Response(
                200,
                json=[
                    {"type": "file", "name": "dentist.md", "path": "calendar/dentist.md"},
                    {"type": "file", "name": "photo.png", "path": "calendar/photo.png"},
                    {"type": "dir", "name": "archive.md", "path": "calendar/archive.md"},
                ],
            )
        if path == "/repos/me/gtd/contents/calendar/dentist.md":
            return httpx.Response(200, json={"encoding": "base64", "content": _b64(long_body)})
        return httpx.Response(404, json={"message": "Not Found"})

    source = _source(handler, ref="main")
    bodies = await source.fetch_collection("calendar")

    assert bodies == [long_body]
    assert [r.url.path for r in seen] == [
        "/repos/me/gtd/contents/calendar",
        "/repos/me/gtd/contents/calendar/dentist.md",
    ]
    assert all(r.url.params.get("ref") == "main" for r in seen)


@pytest.mark.asyncio
async def test_missing_collection_raises_fetch_error() -> None:
    source = _source(lambda request: httpx.Response(404, json={"message": "Not Found"}))

    with pytest.raises(FetchError) as exc:
        await source.fetch_collection("calendar")
    assert exc.value.collection == "calendar"


@pytest.mark.asyncio
async def test_bad_base64_raises_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/calendar"):
            return httpx.Response(200, json=[{"type": "file", "name": "x.md", "path": "calendar/x.md"}])
        return httpx.Response(200, json={"encoding": "base64", "content": "***not base64***"})

    with pytest.raises(FetchError):
        await _source(handler).fetch_collection("calendar")


@pytest.mark.asyncio
async def test_transport_error_raises_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(FetchError):
        await _source(handler).fetch_collection("next_actions")


@pytest.mark.asyncio
async def test_file_instead_of_directory_is_an_error() -> None:
    source = _source(lambda request: httpx.Response(200, json={"type": "file", "content": ""}))

    with pytest.raises(FetchError):
        await source.fetch_collection("calendar")
