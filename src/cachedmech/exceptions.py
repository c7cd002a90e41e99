"""Exception hierarchy for cachedmech.

All exceptions inherit from :class:`CachedMechError`. The HTTP status errors
are raised by the browsing delegate only; the caching layer lets them pass
through unchanged.

Subclass hierarchy::

    CachedMechError
    +-- ConfigError
    +-- CacheFormatError
    +-- ConnectionError_
    +-- NavigationError
    +-- TooManyRedirects
    +-- HTTPStatusError
        +-- AuthError       (401 / 403)
        +-- NotFoundError   (404)
        +-- ClientError     (other 4xx)
        +-- ServerError     (5xx)
"""

from __future__ import annotations


class CachedMechError(Exception):
    """Base exception for all cachedmech errors."""


class ConfigError(CachedMechError):
    """Raised for invalid configuration values (e.g. a non-numeric TTL override)."""


class CacheFormatError(CachedMechError):
    """Raised when a cache entry cannot be decoded.

    Covers corrupted bytes as well as entries written with a different
    codec version. The caching layer treats it as a miss.
    """


class ConnectionError_(CachedMechError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """


class HTTPStatusError(CachedMechError):
    """Raised for 4xx / 5xx responses when ``raise_for_status`` is enabled.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status that triggered the error.
    """

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class AuthError(HTTPStatusError):
    """Raised when the server answers 401 or 403."""


class NotFoundError(HTTPStatusError):
    """Raised when the server answers 404."""


class ClientError(HTTPStatusError):
    """Raised for any other 4xx status."""


class ServerError(HTTPStatusError):
    """Raised for 5xx statuses."""


class NavigationError(CachedMechError):
    """Raised when browser history cannot satisfy a navigation request (e.g. ``back()`` on the first page)."""


class TooManyRedirects(CachedMechError):
    """Raised when a request is redirected more than ``max_redirects`` times."""
