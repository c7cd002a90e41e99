"""Browsing client module for cachedmech.

Classes:
    :class:`Browser` -- stateful web client backed by :class:`httpx.Client`.
    :class:`CachedBrowser` -- wraps a :class:`Browser` and answers its
    requests from a cache when it can.

Both are designed to be used as context managers.

Example::

    from cachedmech.client import CachedBrowser

    with CachedBrowser(base_url="https://example.com") as mech:
        mech.get("/")
        print(mech.is_cached())
"""

from cachedmech.client.browser import Browser
from cachedmech.client.cached import CachedBrowser

__all__ = ["Browser", "CachedBrowser"]
