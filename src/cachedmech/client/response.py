"""Response normalisation ahead of cache storage.

A live :class:`httpx.Response` carries more than its data: a byte stream
bound to the connection, a content decoder keyed on ``Content-Encoding``,
and transport extensions such as ``network_stream``. None of these survive
serialisation, and leaving ``Content-Encoding`` in place would make a
replayed response try to gunzip a body that is already plain.

:func:`normalize_response` produces the detached, decoded form that is both
stored and handed back to the caller, so live and replayed responses look
the same.
"""

from __future__ import annotations

from typing import Optional

import httpx

# Headers describing the on-the-wire body, which no longer apply once decoded.
_WIRE_BODY_HEADERS = frozenset({b"content-encoding", b"content-length", b"transfer-encoding"})


def normalize_response(
    response: httpx.Response,
    request: Optional[httpx.Request] = None,
) -> httpx.Response:
    """Return a fully decoded copy of *response* with no live handles attached.

    The body is read (if it has not been already) and content-decoded by
    httpx. The copy gets the decoded bytes, the original status, reason
    phrase and HTTP version, and the original headers in order. When a
    content encoding was removed, ``Content-Encoding`` and
    ``Transfer-Encoding`` are dropped and ``Content-Length`` is set to the
    decoded size; otherwise the headers are left alone, so a ``HEAD`` or
    ``304`` keeps the length the server announced. Charset handling is left
    to ``response.text``, which still sees the original ``Content-Type``.

    Args:
        response: A live response, streamed or not.
        request: Request to attach to the copy. Defaults to the request of
            *response*.
    """
    content = response.read()
    if request is None:
        request = response.request

    headers = list(response.headers.raw)
    if content and _is_content_encoded(response):
        headers = [(name, value) for name, value in headers
                   if name.lower() not in _WIRE_BODY_HEADERS]
        headers.append((b"Content-Length", str(len(content)).encode("ascii")))

    extensions = {
        key: response.extensions[key]
        for key in ("http_version", "reason_phrase")
        if key in response.extensions
    }

    normalized = httpx.Response(
        status_code=response.status_code,
        headers=headers,
        content=content,
        request=request,
        extensions=extensions,
    )
    response.close()
    return normalized


def _is_content_encoded(response: httpx.Response) -> bool:
    encodings = [
        token.strip().lower()
        for value in response.headers.get_list("Content-Encoding")
        for token in value.split(",")
    ]
    return any(token and token != "identity" for token in encodings)
