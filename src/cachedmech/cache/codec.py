"""Versioned serialisation of responses for cache storage.

A stored entry is the JSON form of :class:`~cachedmech.models.CachedResponse`
with the body base64-encoded. Every entry carries
:data:`CACHE_FORMAT_VERSION`; entries with any other version, and bytes that
are not a valid document at all, raise
:class:`~cachedmech.exceptions.CacheFormatError` on decode so callers can
treat them as misses instead of crashing.

Only normalised responses should be encoded (see
:func:`~cachedmech.client.response.normalize_response`): the codec stores
``response.content`` as-is together with the headers, so a body that is
still content-encoded would be decoded twice on replay.
"""

from __future__ import annotations

import base64
import binascii
from typing import Optional

import httpx
from pydantic import ValidationError

from cachedmech.exceptions import CacheFormatError
from cachedmech.models import CachedResponse

CACHE_FORMAT_VERSION = 1


class ResponseCodec:
    """Encode and decode :class:`httpx.Response` objects to bytes.

    Args:
        version: Schema version written into, and required from, every
            entry. Only tests should need to change it.
    """

    def __init__(self, version: int = CACHE_FORMAT_VERSION) -> None:
        self.version = version

    def encode(self, response: httpx.Response) -> bytes:
        """Serialise status, reason, HTTP version, headers and body of *response*."""
        entry = CachedResponse(
            version=self.version,
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            http_version=response.http_version,
            url=str(response.request.url) if _has_request(response) else None,
            headers=[
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.headers.raw
            ],
            content=base64.b64encode(response.content).decode("ascii"),
        )
        return entry.model_dump_json().encode("utf-8")

    def decode(
        self,
        data: bytes,
        request: Optional[httpx.Request] = None,
    ) -> httpx.Response:
        """Rebuild a response from bytes produced by :meth:`encode`.

        Args:
            data: The stored bytes.
            request: Request to attach to the replayed response.

        Raises:
            CacheFormatError: If *data* is malformed, was written with a
                different schema version, or was stored for a URL other than
                the one *request* asks for.
        """
        try:
            entry = CachedResponse.model_validate_json(data)
        except ValidationError as exc:
            raise CacheFormatError(f"Malformed cache entry: {exc}") from exc

        if entry.version != self.version:
            raise CacheFormatError(
                f"Cache entry has format version {entry.version}, expected {self.version}"
            )

        try:
            content = base64.b64decode(entry.content, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CacheFormatError(f"Malformed cache entry body: {exc}") from exc

        if request is not None and entry.url is not None and entry.url != str(request.url):
            raise CacheFormatError(
                f"Cache entry was stored for {entry.url}, not {request.url}"
            )

        # Header values may hold non-ASCII bytes; httpx only accepts those as bytes.
        try:
            headers = [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in entry.headers
            ]
            extensions = {
                "http_version": entry.http_version.encode("ascii"),
                "reason_phrase": entry.reason_phrase.encode("ascii"),
            }
        except UnicodeEncodeError as exc:
            raise CacheFormatError(f"Malformed cache entry headers: {exc}") from exc

        return httpx.Response(
            status_code=entry.status_code,
            headers=headers,
            content=content,
            request=request,
            extensions=extensions,
        )


def _has_request(response: httpx.Response) -> bool:
    try:
        response.request
    except RuntimeError:
        return False
    return True
