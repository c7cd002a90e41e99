"""cachedmech -- a caching web-browsing client.

Wraps a small :mod:`httpx`-based browser so that every request it issues is
looked up in a cache first. Responses seen before are replayed from the cache
without touching the network; new responses are fetched, normalised and
stored for the next run. This keeps repeated crawls and scraping scripts
polite to the servers they visit.

Typical usage::

    from cachedmech import CachedBrowser

    with CachedBrowser(base_url="https://example.com") as browser:
        browser.get("/page1")
        browser.is_cached()   # False on the first run, True afterwards

The cache key is the request exactly as it would go over the wire, so any
header difference (such as the ``Referer`` header the browser adds while
navigating) produces a separate entry.

Modules:
    models: Pydantic configuration models.
    config: XDG-aware cache directory and environment overrides.
    exceptions: Exception hierarchy.
    cache: Cache handle contract, default disk store, keys and codec.
    client: The browsing delegate and the caching interceptor.
"""

from cachedmech.cache import FileCache
from cachedmech.client import Browser, CachedBrowser

__version__ = "0.1.0"

__all__ = ["Browser", "CachedBrowser", "FileCache", "__version__"]
