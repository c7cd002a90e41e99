"""Synchronous browsing client with history, referer tracking, redirects and retry.

This module provides :class:`Browser`, a small stateful web client built on
:class:`httpx.Client`. It layers on:

- **Page state** -- the last response is the *current page*; relative URLs
  passed to :meth:`Browser.follow` resolve against it, and
  :meth:`Browser.back` walks the history.
- **Referer tracking** -- while navigating, the current page URL is sent as
  ``Referer``, the way a real browser does.
- **Hop-by-hop redirects** -- each redirect hop is dispatched as its own
  request, so anything hooked into dispatch sees every hop.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- 4xx / 5xx responses raise typed exceptions when
  ``raise_for_status`` is on.

Every request goes through a replaceable *request handler*
(:meth:`Browser.set_request_handler`). By default it is
:meth:`Browser.perform_request`, the single network exchange. The caching
wrapper in :mod:`cachedmech.client.cached` installs itself there.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx

from cachedmech.exceptions import (
    AuthError,
    ClientError,
    ConnectionError_,
    NavigationError,
    NotFoundError,
    ServerError,
    TooManyRedirects,
)
from cachedmech.models import BrowserConfig

logger = logging.getLogger(__name__)

RequestHandler = Callable[..., httpx.Response]

# Headers that only describe the body; dropped when a redirect turns the request into a GET.
_BODY_HEADERS = ("Content-Length", "Content-Type", "Transfer-Encoding")


class Browser:
    """Stateful synchronous web client.

    Args:
        transport: Optional :class:`httpx.BaseTransport` used for every
            request (tests pass an :class:`httpx.MockTransport`).
        **config: Fields of :class:`~cachedmech.models.BrowserConfig`
            (``base_url``, ``timeout``, ``verify_ssl``, ``max_retries``,
            ``max_redirects``, ``headers``, ``user_agent``, ``proxies``,
            ``send_referer``, ``raise_for_status``).

    Example::

        with Browser(base_url="https://example.com") as browser:
            browser.get("/")
            browser.follow("about.html")   # sends Referer: https://example.com/
            browser.back()
    """

    def __init__(
        self,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        **config: Any,
    ) -> None:
        self._config = BrowserConfig(**config)
        self._transport = transport
        self.proxies: Optional[dict[str, str]] = self._config.proxies
        self._client: Optional[httpx.Client] = None
        self._request_handler: RequestHandler = self.perform_request
        self._history: list[httpx.Response] = []

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Browser:
        self._ensure_client()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client`. Page history is kept."""
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> BrowserConfig:
        return self._config

    @property
    def response(self) -> Optional[httpx.Response]:
        """The current page, or ``None`` before the first request."""
        return self._history[-1] if self._history else None

    @property
    def url(self) -> Optional[httpx.URL]:
        """URL of the current page."""
        response = self.response
        return response.url if response is not None else None

    @property
    def history(self) -> list[httpx.Response]:
        """Visited pages, oldest first. The last entry is the current page."""
        return list(self._history)

    @property
    def cookies(self) -> httpx.Cookies:
        return self._ensure_client().cookies

    def set_request_handler(self, handler: RequestHandler) -> None:
        """Route every outgoing request through *handler*.

        *handler* is called as ``handler(request)`` and must return an
        :class:`httpx.Response` whose ``request`` is set. It normally delegates to
        :meth:`perform_request` for the actual exchange.
        """
        self._request_handler = handler

    # ------------------------------------------------------------------ #
    # Navigation
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        url: str | httpx.URL,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        content: Optional[str | bytes] = None,
        data: Optional[dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """Request *url* and make the response the current page.

        Args:
            method: HTTP method.
            url: Absolute URL, or a path relative to ``base_url``.
            params: Query parameters.
            headers: Extra request headers. An explicit ``Referer`` wins
                over the automatic one.
            content: Raw body.
            data: Form-encoded body.
            json: JSON-serialisable body.

        Returns:
            The final response after redirects.

        Raises:
            AuthError: On 401 / 403 (when ``raise_for_status`` is on).
            NotFoundError: On 404.
            ClientError: On other 4xx.
            ServerError: On 5xx after all retries are exhausted.
            ConnectionError_: On network / timeout errors after all retries.
            TooManyRedirects: When ``max_redirects`` is exceeded.
        """
        merged_headers = self._referer_headers(headers)
        request = self._ensure_client().build_request(
            method,
            url,
            params=params,
            headers=merged_headers,
            content=content,
            data=data,
            json=json,
        )
        response = self._send(request)
        self._history.append(response)
        self._map_response_error(response)
        return response

    def get(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        """Send a GET request. ``kwargs`` are forwarded to :meth:`request`."""
        return self.request("GET", url, **kwargs)

    def head(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        """Send a HEAD request. ``kwargs`` are forwarded to :meth:`request`."""
        return self.request("HEAD", url, **kwargs)

    def post(self, url: str | httpx.URL, **kwargs: Any) -> httpx.Response:
        """Send a POST request. ``kwargs`` are forwarded to :meth:`request`."""
        return self.request("POST", url, **kwargs)

    def follow(self, href: str, **kwargs: Any) -> httpx.Response:
        """GET *href* resolved against the current page URL.

        Before any page is loaded, *href* is resolved against ``base_url``
        like any other request.
        """
        current = self.url
        target = current.join(href) if current is not None else href
        return self.get(target, **kwargs)

    def back(self) -> httpx.Response:
        """Drop the current page and return to the previous one.

        No request is made.

        Raises:
            NavigationError: If there is no previous page.
        """
        if len(self._history) < 2:
            raise NavigationError("No previous page to go back to")
        self._history.pop()
        return self._history[-1]

    def reload(self) -> httpx.Response:
        """Re-send the request of the current page and replace it in history.

        Raises:
            NavigationError: If no page has been loaded yet.
        """
        current = self.response
        if current is None:
            raise NavigationError("No current page to reload")
        response = self._send(current.request)
        self._history[-1] = response
        self._map_response_error(response)
        return response

    # ------------------------------------------------------------------ #
    # Network exchange
    # ------------------------------------------------------------------ #

    def perform_request(self, request: httpx.Request, **send_kwargs: Any) -> httpx.Response:
        """Send a single request over the network with exponential-backoff retry.

        Redirects are not followed here; :meth:`request` handles them hop by
        hop. Retries on 5xx status codes and connection / timeout errors up
        to ``max_retries`` times. The delay doubles each attempt: 1 s, 2 s,
        4 s, ...

        Args:
            request: The request to send.
            **send_kwargs: Forwarded to :meth:`httpx.Client.send`.

        Raises:
            ConnectionError_: On network / timeout errors after all retries.
        """
        client = self._ensure_client()
        send_kwargs.setdefault("follow_redirects", False)
        max_retries = self._config.max_retries

        for attempt in range(max_retries + 1):
            try:
                response = client.send(request, **send_kwargs)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                response.close()
                time.sleep(delay)
                continue

            return response

        raise ServerError("Request failed after all retries", 500)  # pragma: no cover

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._config.base_url,
                headers={"User-Agent": self._config.user_agent, **self._config.headers},
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                transport=self._transport,
                mounts=self._proxy_mounts(),
            )
        return self._client

    def _proxy_mounts(self) -> Optional[dict[str, httpx.BaseTransport]]:
        if not self.proxies:
            return None
        return {
            pattern: httpx.HTTPTransport(proxy=proxy_url, verify=self._config.verify_ssl)
            for pattern, proxy_url in self.proxies.items()
        }

    def _referer_headers(self, headers: Optional[dict[str, str]]) -> dict[str, str]:
        merged = dict(headers or {})
        current = self.url
        if (
            self._config.send_referer
            and current is not None
            and not any(name.lower() == "referer" for name in merged)
        ):
            merged["Referer"] = str(current)
        return merged

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        """Hand *request* to the installed handler and record any cookies it set."""
        response = self._request_handler(request)
        # Replayed responses never pass through httpx.Client.send, so the jar
        # is fed here for every response.
        self._ensure_client().cookies.extract_cookies(response)
        return response

    def _send(self, request: httpx.Request) -> httpx.Response:
        """Dispatch *request* and follow redirects hop by hop."""
        response = self._dispatch(request)
        for _ in range(self._config.max_redirects):
            if not response.is_redirect:
                return response
            request = self._redirect_request(request, response)
            logger.debug("Redirect %d -> %s %s", response.status_code, request.method, request.url)
            response = self._dispatch(request)

        if response.is_redirect:
            raise TooManyRedirects(
                f"Exceeded {self._config.max_redirects} redirects at {request.url}"
            )
        return response

    def _redirect_request(self, request: httpx.Request, response: httpx.Response) -> httpx.Request:
        """Build the next request for a redirect *response*."""
        url = request.url.join(response.headers["Location"])

        method = request.method
        if response.status_code == httpx.codes.SEE_OTHER and method != "HEAD":
            method = "GET"
        if response.status_code in (httpx.codes.MOVED_PERMANENTLY, httpx.codes.FOUND) and method == "POST":
            method = "GET"

        headers = httpx.Headers(request.headers)
        # Host and Cookie are recomputed for the new URL by build_request.
        for name in ("Host", "Cookie"):
            headers.pop(name, None)
        if url.host != request.url.host:
            headers.pop("Authorization", None)

        content: Optional[bytes] = request.read()
        if method != request.method:
            content = None
            for name in _BODY_HEADERS:
                headers.pop(name, None)

        return self._ensure_client().build_request(method, url, headers=headers, content=content)

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400 or not self._config.raise_for_status:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        prefix = f"HTTP {status} for {response.request.method} {response.url}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg, status)
        if status == 404:
            raise NotFoundError(full_msg, status)
        if status >= 500:
            raise ServerError(full_msg, status)
        raise ClientError(full_msg, status)
