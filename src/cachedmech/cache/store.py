"""Cache handle contract and the default disk-backed store.

The caching browser talks to its store through two calls only::

    get(key: str) -> bytes | None
    set(key: str, value: bytes) -> None

Anything that offers both (and is not a plain mapping) is accepted, so a
:class:`diskcache.Cache`, a Redis wrapper or a test double all work.

When no usable handle is supplied, :class:`FileCache` is used: a
:mod:`diskcache` directory under the user cache dir, namespaced to this
package, whose entries expire after one day unless configured otherwise.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

import diskcache

from cachedmech.config import get_cache_dir
from cachedmech.models import DEFAULT_EXPIRES_IN, DEFAULT_NAMESPACE, CacheConfig


@runtime_checkable
class CacheHandle(Protocol):
    """Key/value store used to persist serialised responses."""

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> Any: ...


def is_cache_handle(obj: Any) -> bool:
    """Return True if *obj* can serve as a cache handle.

    Plain mappings are rejected even though they expose ``get``: a dict
    passed as ``cache`` is almost always a leftover set of cache
    *parameters*, not a store.
    """
    if obj is None or isinstance(obj, Mapping):
        return False
    return callable(getattr(obj, "get", None)) and callable(getattr(obj, "set", None))


class FileCache:
    """Disk-backed cache handle built on :class:`diskcache.Cache`.

    Args:
        directory: Root directory. The store lives in ``<directory>/<namespace>``.
            Defaults to :func:`~cachedmech.config.get_cache_dir`.
        namespace: Subdirectory separating this store from others sharing
            the same root.
        default_expires_in: Seconds before an entry written by :meth:`set`
            expires. ``None`` keeps entries until evicted.

    Example::

        with FileCache("/tmp/mech-cache", default_expires_in=300) as cache:
            cache.set("GET http://example.com/\\n\\n", b"...")
            cache.get("GET http://example.com/\\n\\n")
    """

    def __init__(
        self,
        directory: str | Path | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        default_expires_in: Optional[int] = DEFAULT_EXPIRES_IN,
    ) -> None:
        root = Path(directory) if directory is not None else get_cache_dir()
        self._directory = root / namespace
        self._namespace = namespace
        self._default_expires_in = default_expires_in
        self._cache = diskcache.Cache(str(self._directory))

    @classmethod
    def from_config(cls, config: CacheConfig) -> FileCache:
        """Create a store from a :class:`~cachedmech.models.CacheConfig`."""
        return cls(
            directory=config.directory,
            namespace=config.namespace,
            default_expires_in=config.default_expires_in,
        )

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def namespace(self) -> str:
        return self._namespace

    def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes for *key*, or ``None`` when missing or expired."""
        return self._cache.get(key)

    def set(self, key: str, value: bytes, expire: Optional[float] = None) -> None:
        """Store *value* under *key*.

        Args:
            key: Cache key.
            value: Serialised response bytes.
            expire: Seconds until expiry; defaults to ``default_expires_in``.
        """
        if expire is None:
            expire = self._default_expires_in
        self._cache.set(key, value, expire=expire)

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if an entry was removed."""
        return self._cache.delete(key)

    def clear(self) -> int:
        """Remove all entries and return how many were removed."""
        return self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``size``, ``directory``, ``namespace`` and ``default_expires_in``."""
        return {
            "size": len(self._cache),
            "directory": str(self._directory),
            "namespace": self._namespace,
            "default_expires_in": self._default_expires_in,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()

    def __enter__(self) -> FileCache:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._cache)

    def __repr__(self) -> str:
        return f"FileCache({str(self._directory)!r}, default_expires_in={self._default_expires_in})"
