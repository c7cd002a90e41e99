"""Response caching for cachedmech.

This package provides the pieces the caching browser is assembled from:

- :class:`CacheHandle` / :func:`is_cache_handle` -- the ``get``/``set``
  contract a cache store must meet.
- :class:`FileCache` -- the default store, backed by :mod:`diskcache`.
- :func:`request_key` -- turns a request into its cache key.
- :class:`ResponseCodec` -- versioned serialisation of responses.
"""

from cachedmech.cache.codec import CACHE_FORMAT_VERSION, ResponseCodec
from cachedmech.cache.keys import request_key
from cachedmech.cache.store import CacheHandle, FileCache, is_cache_handle

__all__ = [
    "CACHE_FORMAT_VERSION",
    "CacheHandle",
    "FileCache",
    "ResponseCodec",
    "is_cache_handle",
    "request_key",
]
