"""
Top-level stream() function for synchronous event stream reading.

This is the primary API for consuming a server-sent event stream.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from resilient_streams._errors import error_from_status
from resilient_streams._response import EventStream
from resilient_streams._types import HeadersLike
from resilient_streams._util import (
    parse_httpx_headers,
    resolve_headers_sync,
    with_event_stream_accept,
)

logger = logging.getLogger(__name__)


def stream(
    url: str,
    *,
    method: str = "GET",
    headers: HeadersLike | None = None,
    client: httpx.Client | None = None,
    timeout: float | httpx.Timeout | None = None,
    **kwargs: Any,
) -> EventStream:
    """
    Open a server-sent event stream.

    The request is made immediately with `Accept: text/event-stream`. A
    non-success status raises TransportError; the request is never retried
    here (wrap the call in with_automatic_retries() for that).

    Args:
        url: The URL of the event stream
        method: HTTP method
        headers: HTTP headers (static strings or callables)
        client: Optional httpx.Client to use (will not be closed)
        timeout: Request timeout
        **kwargs: Additional arguments passed to httpx (params, json, content, ...)

    Returns:
        EventStream for consuming the events

    Raises:
        TransportError: If the server responds with a non-success status

    Example:
        >>> with stream("https://example.com/predictions/abc/stream") as events:
        ...     for event in events:
        ...         print(event)
    """
    own_client = client is None
    http_client = client or httpx.Client(timeout=timeout or 30.0)

    try:
        response = _open(
            http_client,
            method,
            url,
            headers=headers,
            timeout=timeout,
            **kwargs,
        )
    except Exception:
        if own_client:
            http_client.close()
        raise

    def close() -> None:
        response.close()
        if own_client:
            http_client.close()

    return EventStream(response.iter_bytes(), close=close, url=url)


def _open(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    headers: HeadersLike | None,
    timeout: float | httpx.Timeout | None,
    **kwargs: Any,
) -> httpx.Response:
    """Send the stream request and check its status."""
    request_headers = with_event_stream_accept(resolve_headers_sync(headers))

    request = client.build_request(
        method,
        url,
        headers=request_headers,
        timeout=timeout,
        **kwargs,
    )
    # Use streaming mode so events arrive as they are sent
    response = client.send(request, stream=True)

    if not response.is_success:
        # For errors, read the body for details then close
        try:
            body = response.read().decode("utf-8", errors="replace")
        finally:
            response.close()
        raise error_from_status(
            response.status_code,
            url,
            body=body,
            headers=parse_httpx_headers(response.headers),
        )

    logger.debug("Opened event stream %s %s", method, url)
    return response
