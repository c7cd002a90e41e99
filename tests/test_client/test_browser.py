"""Tests for the browsing client."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
from pydantic import ValidationError

from cachedmech.client.browser import Browser
from cachedmech.exceptions import (
    AuthError,
    ClientError,
    ConnectionError_,
    NavigationError,
    NotFoundError,
    ServerError,
    TooManyRedirects,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_browser(transport: httpx.BaseTransport, **overrides: Any) -> Browser:
    kwargs: dict[str, Any] = {"base_url": "http://test.local", "max_retries": 0}
    kwargs.update(overrides)
    return Browser(transport=transport, **kwargs)


# ---------------------------------------------------------------------------
# Construction and context manager
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_defaults(self) -> None:
        browser = Browser()
        assert browser.config.max_redirects == 20
        assert browser.config.send_referer is True
        assert browser.proxies is None
        assert browser.response is None
        assert browser.url is None
        assert browser.history == []

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Browser(no_such_option=True)

    def test_context_manager_opens_and_closes_client(self, transport) -> None:
        browser = _make_browser(transport)
        assert browser._client is None
        with browser:
            assert browser._client is not None
        assert browser._client is None

    def test_client_created_lazily(self, transport, site) -> None:
        browser = _make_browser(transport)
        browser.get("/page1")
        assert site.call_count == 1
        browser.close()

    def test_proxies_mounted(self) -> None:
        browser = Browser(proxies={"http://": "http://proxy.local:8080"})
        with browser:
            assert "http://" in [pattern.pattern for pattern in browser._client._mounts]


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class TestNavigation:
    def test_get_sets_current_page(self, transport) -> None:
        with _make_browser(transport) as browser:
            response = browser.get("/page1")
            assert response.status_code == 200
            assert browser.response is response
            assert str(browser.url) == "http://test.local/page1"

    def test_default_headers(self, transport, site) -> None:
        with _make_browser(transport, user_agent="test-agent", headers={"X-Team": "crawl"}) as browser:
            browser.get("/page1")
        sent = site.requests[0]
        assert sent.headers["User-Agent"] == "test-agent"
        assert sent.headers["X-Team"] == "crawl"

    def test_first_request_has_no_referer(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.get("/page1")
        assert "Referer" not in site.requests[0].headers

    def test_referer_sent_from_current_page(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.get("/page0")
            browser.get("/page1")
        assert site.requests[1].headers["Referer"] == "http://test.local/page0"

    def test_referer_disabled(self, transport, site) -> None:
        with _make_browser(transport, send_referer=False) as browser:
            browser.get("/page0")
            browser.get("/page1")
        assert "Referer" not in site.requests[1].headers

    def test_explicit_referer_wins(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.get("/page0")
            browser.get("/page1", headers={"referer": "http://elsewhere/"})
        assert site.requests[1].headers.get_list("Referer") == ["http://elsewhere/"]

    def test_follow_resolves_relative_to_current_page(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.get("/docs/index.html")
            browser.follow("intro.html")
        assert str(site.requests[1].url) == "http://test.local/docs/intro.html"
        assert site.requests[1].headers["Referer"] == "http://test.local/docs/index.html"

    def test_follow_without_current_page_uses_base_url(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.follow("/page1")
        assert str(site.requests[0].url) == "http://test.local/page1"

    def test_post_form(self, transport) -> None:
        with _make_browser(transport) as browser:
            response = browser.post("/echo", data={"q": "cache"})
        assert response.json()["method"] == "POST"
        assert response.json()["body"] == "q=cache"

    def test_head(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.head("/page1")
        assert site.requests[0].method == "HEAD"

    def test_history_and_back(self, transport) -> None:
        with _make_browser(transport) as browser:
            first = browser.get("/page0")
            browser.get("/page1")
            assert len(browser.history) == 2
            assert browser.back() is first
            assert browser.response is first
            assert len(browser.history) == 1

    def test_back_on_first_page(self, transport) -> None:
        with _make_browser(transport) as browser:
            browser.get("/page0")
            with pytest.raises(NavigationError):
                browser.back()

    def test_reload_resends_current_request(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.get("/page1")
            reloaded = browser.reload()
            assert site.call_count == 2
            assert site.requests[1].url == site.requests[0].url
            assert browser.response is reloaded
            assert len(browser.history) == 1

    def test_reload_without_page(self, transport) -> None:
        with _make_browser(transport) as browser:
            with pytest.raises(NavigationError):
                browser.reload()

    def test_cookies_kept_between_requests(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            browser.get("/login")
            browser.get("/page1")
            assert browser.cookies.get("session") == "abc123"
        assert "session=abc123" in site.requests[1].headers["Cookie"]


# ---------------------------------------------------------------------------
# Redirects
# ---------------------------------------------------------------------------


class TestRedirects:
    def test_redirect_followed_hop_by_hop(self, transport, site) -> None:
        with _make_browser(transport) as browser:
            handler = MagicMock(side_effect=browser.perform_request)
            browser.set_request_handler(handler)
            response = browser.get("/redirect")
        assert response.status_code == 200
        assert str(browser.url) == "http://test.local/page1"
        assert handler.call_count == 2
        assert [r.url.path for r in site.requests] == ["/redirect", "/page1"]

    def test_redirect_loop(self, transport) -> None:
        with _make_browser(transport, max_redirects=3) as browser:
            with pytest.raises(TooManyRedirects):
                browser.get("/loop")

    def test_see_other_turns_post_into_get(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/submit":
                return httpx.Response(303, headers={"Location": "/done"})
            return httpx.Response(200, text="done")

        with _make_browser(httpx.MockTransport(handler)) as browser:
            browser.post("/submit", data={"a": "1"})
        assert seen[1].method == "GET"
        assert seen[1].content == b""
        assert "Content-Type" not in seen[1].headers

    def test_temporary_redirect_keeps_method_and_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/old":
                return httpx.Response(307, headers={"Location": "/new"})
            return httpx.Response(200)

        with _make_browser(httpx.MockTransport(handler)) as browser:
            browser.post("/old", content=b"payload")
        assert seen[1].method == "POST"
        assert seen[1].content == b"payload"

    def test_cross_host_redirect_drops_authorization(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "test.local":
                return httpx.Response(302, headers={"Location": "http://other.local/x"})
            return httpx.Response(200)

        with _make_browser(httpx.MockTransport(handler)) as browser:
            browser.get("/start", headers={"Authorization": "Bearer secret"})
        assert "Authorization" not in seen[1].headers
        assert seen[1].headers["Host"] == "other.local"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status,exc_type",
        [(401, AuthError), (403, AuthError), (404, NotFoundError), (409, ClientError), (503, ServerError)],
    )
    def test_status_mapped(self, status: int, exc_type: type) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(status, json={"error": "nope"}))
        with _make_browser(transport) as browser:
            with pytest.raises(exc_type) as exc_info:
                browser.get("/x")
        assert exc_info.value.status_code == status
        assert "nope" in str(exc_info.value)

    def test_error_page_still_becomes_current(self, transport) -> None:
        with _make_browser(transport) as browser:
            with pytest.raises(NotFoundError):
                browser.get("/missing")
            assert browser.response.status_code == 404

    def test_raise_for_status_disabled(self, transport) -> None:
        with _make_browser(transport, raise_for_status=False) as browser:
            response = browser.get("/missing")
        assert response.status_code == 404

    def test_plain_text_error_body(self, transport) -> None:
        with _make_browser(transport) as browser:
            with pytest.raises(ServerError, match="internal error"):
                browser.get("/broken")


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


class TestRetry:
    @patch("cachedmech.client.browser.time.sleep")
    def test_retries_server_errors(self, mock_sleep: MagicMock) -> None:
        attempts = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            if attempts["n"] < 3:
                return httpx.Response(502)
            return httpx.Response(200, text="ok")

        with _make_browser(httpx.MockTransport(handler), max_retries=3) as browser:
            response = browser.get("/flaky")
        assert response.text == "ok"
        assert attempts["n"] == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @patch("cachedmech.client.browser.time.sleep")
    def test_returns_last_server_error_after_retries(self, mock_sleep: MagicMock) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        with _make_browser(transport, max_retries=2, raise_for_status=False) as browser:
            response = browser.get("/down")
        assert response.status_code == 500
        assert mock_sleep.call_count == 2

    @patch("cachedmech.client.browser.time.sleep")
    def test_connection_error_raised_after_retries(self, mock_sleep: MagicMock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with _make_browser(httpx.MockTransport(handler), max_retries=1) as browser:
            with pytest.raises(ConnectionError_, match="after 2 attempts"):
                browser.get("/unreachable")
        assert mock_sleep.call_count == 1

    def test_perform_request_does_not_follow_redirects(self, transport) -> None:
        with _make_browser(transport) as browser:
            request = browser._ensure_client().build_request("GET", "/redirect")
            response = browser.perform_request(request)
        assert response.status_code == 302
        assert browser.history == []


# ---------------------------------------------------------------------------
# Request handler hook
# ---------------------------------------------------------------------------


class TestRequestHandler:
    def test_handler_receives_every_request(self, transport, site) -> None:
        canned = httpx.Response(200, text="canned")

        def handler(request: httpx.Request) -> httpx.Response:
            canned.request = request
            return canned

        with _make_browser(transport) as browser:
            browser.set_request_handler(handler)
            response = browser.get("/page1")
        assert response.text == "canned"
        assert site.call_count == 0

    def test_handler_cookies_recorded(self, transport) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"Set-Cookie": "replayed=yes; Path=/"}, request=request)

        with _make_browser(transport) as browser:
            browser.set_request_handler(handler)
            browser.get("/page1")
            assert browser.cookies.get("replayed") == "yes"

    def test_json_body(self, transport) -> None:
        with _make_browser(transport) as browser:
            response = browser.post("/echo", json={"a": 1})
        assert json.loads(response.json()["body"]) == {"a": 1}
