"""Shared test fixtures for cachedmech.

Provides an isolated cache directory, a disk-backed cache handle, a
dictionary-backed cache handle that records writes, and a small fake site
served through :class:`httpx.MockTransport` that counts the requests it
receives. These fixtures are discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import gzip
from pathlib import Path
from typing import Optional

import httpx
import pytest

from cachedmech.cache import FileCache


# ---------------------------------------------------------------------------
# Cache handles
# ---------------------------------------------------------------------------


class MemoryCache:
    """In-memory cache handle that keeps every key/value it was given."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.gets: list[str] = []
        self.sets: list[str] = []

    def get(self, key: str) -> Optional[bytes]:
        self.gets.append(key)
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.sets.append(key)
        self.data[key] = value

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None


@pytest.fixture
def memory_cache() -> MemoryCache:
    """A fresh in-memory cache handle."""
    return MemoryCache()


@pytest.fixture
def file_cache(tmp_path: Path) -> FileCache:
    """A FileCache rooted in tmp_path, closed after the test."""
    cache = FileCache(tmp_path, default_expires_in=300)
    yield cache
    cache.close()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CACHE_HOME at tmp_path and clear CACHEDMECH_* overrides.

    Returns:
        The directory the default cache will be created under.
    """
    cache_home = tmp_path / "xdg-cache"
    monkeypatch.setattr("cachedmech.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_home))
    for var in ["CACHEDMECH_CACHE_DIR", "CACHEDMECH_CACHE_TTL"]:
        monkeypatch.delenv(var, raising=False)
    return cache_home / "cachedmech"


# ---------------------------------------------------------------------------
# Fake site
# ---------------------------------------------------------------------------


class FakeSite:
    """Request handler for :class:`httpx.MockTransport` with a few canned pages.

    Every request is appended to :attr:`requests`, so tests can tell a
    network fetch from a cache replay.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/gzipped":
            body = "<html>Compressed page</html>".encode("utf-8")
            return httpx.Response(
                200,
                headers={
                    "Content-Type": "text/html; charset=utf-8",
                    "Content-Encoding": "gzip",
                },
                content=gzip.compress(body),
            )
        if path == "/redirect":
            return httpx.Response(302, headers={"Location": "/page1"})
        if path == "/loop":
            return httpx.Response(302, headers={"Location": "/loop"})
        if path == "/login":
            return httpx.Response(
                200,
                headers={"Set-Cookie": "session=abc123; Path=/"},
                text="Welcome",
            )
        if path == "/missing":
            return httpx.Response(404, json={"message": "no such page"})
        if path == "/broken":
            return httpx.Response(500, text="internal error")
        if path == "/echo":
            return httpx.Response(
                200,
                json={
                    "method": request.method,
                    "body": request.content.decode("utf-8"),
                    "referer": request.headers.get("Referer"),
                },
            )
        return httpx.Response(
            200,
            headers={"Content-Type": "text/html; charset=utf-8"},
            text=f"<html>{path} visit {self.call_count}</html>",
        )


@pytest.fixture
def site() -> FakeSite:
    """A fake site that counts requests."""
    return FakeSite()


@pytest.fixture
def transport(site: FakeSite) -> httpx.MockTransport:
    """Mock transport serving the fake site."""
    return httpx.MockTransport(site)
