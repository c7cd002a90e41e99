"""Cache keys derived from the textual form of a request.

The key is the request as a string: the request line, every header in the
order it will be sent, a blank line and the body. Nothing is normalised.
Two requests that differ only in an incidental header, such as the
``Referer`` a browser adds when following a link, get different keys and
therefore separate cache entries. Hit rates depend on requests being
reproduced exactly.
"""

from __future__ import annotations

import httpx


def request_key(request: httpx.Request) -> str:
    """Serialise *request* into its cache key.

    Header names keep the casing and order they were given in. The body is
    decoded as latin-1, which maps every byte to one character, so binary
    bodies yield distinct, stable keys. Streaming bodies are read into
    memory first.

    Example::

        >>> request_key(httpx.Request("GET", "http://example.com/page1"))
        'GET http://example.com/page1\\nHost: example.com\\n\\n'
    """
    lines = [f"{request.method} {request.url}"]
    for name, value in request.headers.raw:
        lines.append(f"{name.decode('latin-1')}: {value.decode('latin-1')}")
    body = request.read().decode("latin-1")
    return "\n".join(lines) + "\n\n" + body
