"""Caching wrapper around :class:`~cachedmech.client.browser.Browser`.

:class:`CachedBrowser` holds a browser and installs itself as that
browser's request handler, so every request the browser issues (page
loads, link follows, each redirect hop) passes through
:meth:`CachedBrowser.perform_request`:

1. The request is turned into its cache key
   (:func:`~cachedmech.cache.keys.request_key`).
2. On a hit, the stored bytes are decoded into a response and the network
   is not touched.
3. On a miss, the browser performs the real exchange; the response is
   normalised (decoded body, no live handles), encoded and stored.

:meth:`CachedBrowser.is_cached` reports where the last response came from.

Keys are the verbatim request text. Navigating to the same URL from a
different page changes the ``Referer`` header and therefore misses the
cache; pass ``send_referer=False`` when that matters more than realism.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from cachedmech.cache.codec import ResponseCodec
from cachedmech.cache.keys import request_key
from cachedmech.cache.store import CacheHandle, FileCache, is_cache_handle
from cachedmech.client.browser import Browser
from cachedmech.client.response import normalize_response
from cachedmech.config import load_cache_config
from cachedmech.exceptions import CacheFormatError

logger = logging.getLogger(__name__)


def default_cache() -> FileCache:
    """Build the store used when no cache handle is supplied.

    A :class:`~cachedmech.cache.store.FileCache` in the ``cachedmech``
    namespace of the user cache directory, expiring entries after one day.
    ``CACHEDMECH_CACHE_DIR`` and ``CACHEDMECH_CACHE_TTL`` override the
    location and lifetime.
    """
    return FileCache.from_config(load_cache_config())


class CachedBrowser:
    """A :class:`~cachedmech.client.browser.Browser` that replays responses from a cache.

    Args:
        cache: An initialised cache handle with ``get(key)`` and
            ``set(key, value)``. When omitted, or when the object does not
            qualify (a plain dict, or missing either method), a warning is
            logged and :func:`default_cache` is used instead.
        strict_cache: When ``False`` (the default) a cache handle that
            raises on ``get`` or ``set`` is logged and ignored: a failed
            read counts as a miss, a failed write just skips storage. When
            ``True`` such errors propagate to the caller.
        codec: Serialiser for stored responses.
        **browser_config: Passed unmodified to
            :class:`~cachedmech.client.browser.Browser`.

    Attributes not defined here (``get``, ``post``, ``follow``, ``back``,
    ``history``, ...) are forwarded to the wrapped browser. Assigning to an
    attribute the browser has (``mech.proxies = {...}``) sets it on the
    browser.

    Example::

        with CachedBrowser(cache=FileCache("/tmp/mech"), send_referer=False) as mech:
            mech.get("https://example.com/")
            mech.is_cached()   # False on a cold cache
            mech.get("https://example.com/")
            mech.is_cached()   # True, served without a request
    """

    def __init__(
        self,
        cache: Any = None,
        *,
        strict_cache: bool = False,
        codec: Optional[ResponseCodec] = None,
        **browser_config: Any,
    ) -> None:
        if cache is not None and not is_cache_handle(cache):
            logger.warning(
                "The cache parameter must be an initialised cache object with "
                "get() and set() methods, not %s; using the default file cache",
                type(cache).__name__,
            )
            cache = None

        self._browser = Browser(**browser_config)
        if cache is None:
            cache = default_cache()

        self.cache: CacheHandle = cache
        self._strict_cache = strict_cache
        self._codec = codec or ResponseCodec()
        self._is_cached: Optional[bool] = None
        self._browser.set_request_handler(self.perform_request)

    # ------------------------------------------------------------------ #
    # Delegation
    # ------------------------------------------------------------------ #

    def __getattr__(self, name: str) -> Any:
        if name == "_browser":
            raise AttributeError(name)
        return getattr(self._browser, name)

    def __setattr__(self, name: str, value: Any) -> None:
        browser = self.__dict__.get("_browser")
        if (
            browser is not None
            and name not in self.__dict__
            and not hasattr(type(self), name)
            and hasattr(browser, name)
        ):
            setattr(browser, name, value)
        else:
            object.__setattr__(self, name, value)

    def __enter__(self) -> CachedBrowser:
        self._browser.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._browser.__exit__(*args)

    @property
    def browser(self) -> Browser:
        """The wrapped browser."""
        return self._browser

    # ------------------------------------------------------------------ #
    # Caching
    # ------------------------------------------------------------------ #

    def is_cached(self) -> Optional[bool]:
        """Return where the last response came from.

        ``True`` if it was replayed from the cache, ``False`` if it was
        fetched, ``None`` if no request has been made yet.
        """
        return self._is_cached

    def cache_key(self, request: httpx.Request) -> str:
        """Return the key *request* is stored under."""
        return request_key(request)

    def perform_request(self, request: httpx.Request, **send_kwargs: Any) -> httpx.Response:
        """Return the cached response for *request*, or fetch and store it.

        Args:
            request: The request to answer. It is never modified.
            **send_kwargs: Forwarded to
                :meth:`~cachedmech.client.browser.Browser.perform_request`
                on a miss.

        Returns:
            The replayed response on a hit, the normalised live response on
            a miss.
        """
        key = request_key(request)
        response = self._lookup(key, request)

        if response is not None:
            logger.debug("Cache hit: %s %s", request.method, request.url)
            self._is_cached = True
        else:
            logger.debug("Cache miss: %s %s", request.method, request.url)
            live = self._browser.perform_request(request, **send_kwargs)
            response = normalize_response(live, request)
            self._store(key, response)
            self._is_cached = False

        # Replayed responses bypass the browser, which expects a proxy mapping.
        if self._browser.proxies is None:
            self._browser.proxies = {}

        return response

    def invalidate(self, request: httpx.Request) -> None:
        """Remove the entry for *request* if the cache handle supports ``delete``."""
        delete = getattr(self.cache, "delete", None)
        if callable(delete):
            delete(request_key(request))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _lookup(self, key: str, request: httpx.Request) -> Optional[httpx.Response]:
        """Return the decoded cached response for *key*, or ``None`` on a miss."""
        try:
            data = self.cache.get(key)
        except Exception as exc:
            if self._strict_cache:
                raise
            logger.warning(
                "Cache read failed for %s %s, treating as a miss: %s",
                request.method, request.url, exc,
            )
            return None

        if not data:
            return None

        try:
            return self._codec.decode(data, request)
        except CacheFormatError as exc:
            logger.debug(
                "Ignoring unreadable cache entry for %s %s: %s",
                request.method, request.url, exc,
            )
            return None
        except Exception as exc:
            logger.warning(
                "Cache entry for %s %s could not be replayed, treating as a miss: %s",
                request.method, request.url, exc,
            )
            return None

    def _store(self, key: str, response: httpx.Response) -> None:
        data = self._codec.encode(response)
        try:
            self.cache.set(key, data)
        except Exception as exc:
            if self._strict_cache:
                raise
            logger.warning(
                "Cache write failed for %s %s: %s",
                response.request.method, response.request.url, exc,
            )
