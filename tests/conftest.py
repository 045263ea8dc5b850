"""
Pytest configuration and fixtures for resilient-streams tests.

This module provides mock httpx responses and clients for unit tests.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest


class MockStreamResponse:
    """Mock streaming httpx.Response that yields pre-split chunks."""

    def __init__(
        self,
        chunks: list[bytes] | bytes | str = b"",
        *,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        read_error: Exception | None = None,
    ):
        if isinstance(chunks, str):
            chunks = chunks.encode("utf-8")
        if isinstance(chunks, bytes):
            chunks = [chunks]
        self._chunks = chunks
        self.status_code = status_code
        self.headers = httpx.Headers(headers or {})
        self.is_success = 200 <= status_code < 300
        self.chunks_read = 0
        self.closed = False
        self._read_error = read_error

    def read(self) -> bytes:
        if self._read_error is not None:
            raise self._read_error
        return b"".join(self._chunks)

    async def aread(self) -> bytes:
        return self.read()

    def iter_bytes(self) -> Iterator[bytes]:
        for chunk in self._chunks:
            self.chunks_read += 1
            yield chunk

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            self.chunks_read += 1
            yield chunk

    def close(self) -> None:
        self.closed = True

    async def aclose(self) -> None:
        self.closed = True


def setup_mock_client(mock_response: MockStreamResponse) -> MagicMock:
    """Set up a mock httpx.Client that uses the streaming API."""
    mock_client = MagicMock(spec=httpx.Client)
    mock_client.build_request.return_value = MagicMock()
    mock_client.send.return_value = mock_response
    return mock_client


def setup_mock_async_client(mock_response: MockStreamResponse) -> MagicMock:
    """Set up a mock httpx.AsyncClient that uses the streaming API."""
    mock_client = MagicMock(spec=httpx.AsyncClient)
    mock_client.build_request.return_value = MagicMock()
    mock_client.send = AsyncMock(return_value=mock_response)
    return mock_client


def get_request_headers(mock_client: MagicMock, call_index: int = 0) -> dict:
    """Extract headers from the captured build_request call."""
    call_args = mock_client.build_request.call_args_list[call_index]
    return call_args.kwargs.get("headers", {})


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
