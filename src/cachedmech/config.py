"""Cache directory resolution and environment overrides.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cachedmech/cache/`` on macOS and Windows. See :func:`get_cache_dir`.
* **Environment overrides** -- :func:`load_cache_config` builds a
  :class:`~cachedmech.models.CacheConfig` from ``CACHEDMECH_CACHE_DIR`` and
  ``CACHEDMECH_CACHE_TTL`` on top of the model defaults.
"""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Any

from cachedmech.exceptions import ConfigError
from cachedmech.models import CacheConfig

_APP_NAME = "cachedmech"

ENV_CACHE_DIR = "CACHEDMECH_CACHE_DIR"
ENV_CACHE_TTL = "CACHEDMECH_CACHE_TTL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Cached responses live here. They can be safely deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/cachedmech/`` (default ``~/.cache/cachedmech/``).
    On macOS/Windows: ``~/.cachedmech/cache/``.

    Returns:
        Absolute path to the cache directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CACHE_HOME", (".cache",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Environment overrides ---


def load_cache_config(**overrides: Any) -> CacheConfig:
    """Build the default cache configuration.

    Precedence (highest first): explicit keyword *overrides*, environment
    variables, model defaults.

    Raises:
        ConfigError: If ``CACHEDMECH_CACHE_TTL`` is not an integer.
    """
    values: dict[str, Any] = {}

    env_dir = os.environ.get(ENV_CACHE_DIR)
    if env_dir:
        values["directory"] = env_dir

    env_ttl = os.environ.get(ENV_CACHE_TTL)
    if env_ttl:
        try:
            values["default_expires_in"] = int(env_ttl)
        except ValueError as exc:
            raise ConfigError(
                f"Invalid {ENV_CACHE_TTL}={env_ttl!r}: expected seconds as an integer"
            ) from exc

    values.update({k: v for k, v in overrides.items() if v is not None})
    return CacheConfig(**values)
