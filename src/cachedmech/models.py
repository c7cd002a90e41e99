"""Pydantic models shared across cachedmech modules.

**Configuration models** -- :class:`BrowserConfig` holds the settings the
browsing delegate is built from, :class:`CacheConfig` the settings of the
default disk-backed cache.

**Cache entry model** -- :class:`CachedResponse` is the on-disk schema of a
stored response. It is versioned so that entries written by an older codec
are detected and treated as cache misses.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_NAMESPACE = "cachedmech"
DEFAULT_EXPIRES_IN = 24 * 60 * 60


# --- Browser Config ---


class BrowserConfig(BaseModel):
    """Settings for :class:`~cachedmech.client.browser.Browser`.

    Every keyword accepted by the browser (other than ``transport``) maps to
    a field here, so the caching wrapper can forward its configuration
    unmodified. Unknown keys are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default="", description="Base URL for relative requests")
    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=0, description="Retries on 5xx and network errors")
    max_redirects: int = Field(default=20, description="Redirect hops before giving up")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every request"
    )
    user_agent: str = Field(
        default="cachedmech/0.1", description="User-Agent header value"
    )
    proxies: Optional[dict[str, str]] = Field(
        default=None,
        description="Proxy URL per URL pattern, e.g. {'http://': 'http://proxy:8080'}",
    )
    send_referer: bool = Field(
        default=True, description="Send the current page as Referer while navigating"
    )
    raise_for_status: bool = Field(
        default=True, description="Raise on 4xx/5xx responses"
    )


# --- Cache Config ---


class CacheConfig(BaseModel):
    """Settings for the default :class:`~cachedmech.cache.store.FileCache`."""

    directory: Optional[str] = Field(
        default=None, description="Cache root; defaults to the XDG cache dir"
    )
    namespace: str = Field(default=DEFAULT_NAMESPACE, description="Subdirectory name")
    default_expires_in: int = Field(
        default=DEFAULT_EXPIRES_IN, description="Entry TTL in seconds"
    )


# --- Cache entry ---


class CachedResponse(BaseModel):
    """Serialised form of a normalised :class:`httpx.Response`.

    ``headers`` is a list of pairs rather than a mapping so that header order
    and repeated headers (``Set-Cookie``) survive the round trip.
    """

    version: int
    status_code: int
    reason_phrase: str = ""
    http_version: str = "HTTP/1.1"
    url: Optional[str] = None
    headers: list[tuple[str, str]] = Field(default_factory=list)
    content: str = Field(default="", description="Base64-encoded decoded body")
