"""
Top-level astream() function for asynchronous event stream reading.

This is the primary async API for consuming a server-sent event stream.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any

import httpx

from resilient_streams._errors import error_from_status
from resilient_streams._response import AsyncEventStream
from resilient_streams._types import HeadersLike
from resilient_streams._util import (
    parse_httpx_headers,
    resolve_headers_async,
    with_event_stream_accept,
)

logger = logging.getLogger(__name__)


class AsyncStreamSession:
    """
    Async context manager wrapper for astream().

    This allows both patterns:
        # Preferred: direct async context manager
        async with astream(url) as events:
            async for event in events:
                print(event)

        # Also supported: await then use as context manager
        events = await astream(url)
        async with events:
            async for event in events:
                print(event)
    """

    def __init__(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: HeadersLike | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | httpx.Timeout | None = None,
        **kwargs: Any,
    ) -> None:
        self._url = url
        self._method = method
        self._headers = headers
        self._client = client
        self._timeout = timeout
        self._kwargs = kwargs
        self._stream: AsyncEventStream | None = None

    def __await__(self) -> Generator[Any, None, AsyncEventStream]:
        """Allow: events = await astream(url)"""
        return self._create_stream().__await__()

    async def _create_stream(self) -> AsyncEventStream:
        self._stream = await _astream_impl(
            self._url,
            method=self._method,
            headers=self._headers,
            client=self._client,
            timeout=self._timeout,
            **self._kwargs,
        )
        return self._stream

    async def __aenter__(self) -> AsyncEventStream:
        """Allow: async with astream(url) as events:"""
        if self._stream is None:
            await self._create_stream()
        assert self._stream is not None
        return self._stream

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Close the stream on exit."""
        if self._stream is not None:
            await self._stream.aclose()


def astream(
    url: str,
    *,
    method: str = "GET",
    headers: HeadersLike | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float | httpx.Timeout | None = None,
    **kwargs: Any,
) -> AsyncStreamSession:
    """
    Open a server-sent event stream asynchronously.

    Returns an async context manager that can be used directly with
    `async with`, or awaited to get the AsyncEventStream.

    Args:
        url: The URL of the event stream
        method: HTTP method
        headers: HTTP headers (static strings, callables or async callables)
        client: Optional httpx.AsyncClient to use (will not be closed)
        timeout: Request timeout
        **kwargs: Additional arguments passed to httpx (params, json, content, ...)

    Returns:
        AsyncStreamSession that can be used as async context manager or awaited

    Example:
        >>> async with astream("https://example.com/predictions/abc/stream") as events:
        ...     async for event in events:
        ...         print(event)
    """
    return AsyncStreamSession(
        url,
        method=method,
        headers=headers,
        client=client,
        timeout=timeout,
        **kwargs,
    )


async def _astream_impl(
    url: str,
    *,
    method: str,
    headers: HeadersLike | None,
    client: httpx.AsyncClient | None,
    timeout: float | httpx.Timeout | None,
    **kwargs: Any,
) -> AsyncEventStream:
    """Internal implementation that opens the stream."""
    own_client = client is None
    http_client = client or httpx.AsyncClient(timeout=timeout or 30.0)

    try:
        request_headers = with_event_stream_accept(
            await resolve_headers_async(headers)
        )
        request = http_client.build_request(
            method,
            url,
            headers=request_headers,
            timeout=timeout,
            **kwargs,
        )
        response = await http_client.send(request, stream=True)

        if not response.is_success:
            try:
                body_bytes = await response.aread()
            finally:
                await response.aclose()
            raise error_from_status(
                response.status_code,
                url,
                body=body_bytes.decode("utf-8", errors="replace"),
                headers=parse_httpx_headers(response.headers),
            )
    except Exception:
        if own_client:
            await http_client.aclose()
        raise

    logger.debug("Opened event stream %s %s", method, url)

    async def aclose() -> None:
        await response.aclose()
        if own_client:
            await http_client.aclose()

    return AsyncEventStream(response.aiter_bytes(), aclose=aclose, url=url)
