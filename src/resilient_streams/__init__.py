"""
Resilient Streams Python Client

A Python client library for consuming server-sent event streams and for
retrying HTTP requests with backoff.

Example usage:
    >>> from resilient_streams import stream, with_automatic_retries
    >>>
    >>> # Read events until the server sends `done`
    >>> with stream("https://example.com/predictions/abc/stream") as events:
    ...     for event in events:
    ...         print(event.event, event.data)
    >>>
    >>> # Retry rate-limited requests
    >>> response = with_automatic_retries(
    ...     lambda: httpx.get("https://example.com/predictions"),
    ...     should_retry=lambda r: r.status_code == 429,
    ... )
"""

from importlib.metadata import PackageNotFoundError, version

from resilient_streams._errors import (
    ResilientStreamError,
    StreamConsumedError,
    StreamProtocolError,
    TransportError,
)
from resilient_streams._response import AsyncEventStream, EventStream
from resilient_streams._retry import (
    GenericFailure,
    TransportFailure,
    parse_retry_after,
)
from resilient_streams._sse import (
    EventAssembler,
    LineSplitter,
    parse_sse_async,
    parse_sse_sync,
)
from resilient_streams._types import HeadersLike, RetryOptions, ServerSentEvent
from resilient_streams.astream import astream
from resilient_streams.retry import (
    AsyncResilientExecutor,
    ResilientExecutor,
    awith_automatic_retries,
    with_automatic_retries,
)
from resilient_streams.stream import stream

__all__ = [
    # Types
    "ServerSentEvent",
    "RetryOptions",
    "TransportFailure",
    "GenericFailure",
    "HeadersLike",
    # Errors
    "ResilientStreamError",
    "TransportError",
    "StreamProtocolError",
    "StreamConsumedError",
    # Parsing
    "LineSplitter",
    "EventAssembler",
    "parse_sse_sync",
    "parse_sse_async",
    "parse_retry_after",
    # Top-level functions
    "stream",
    "astream",
    "with_automatic_retries",
    "awith_automatic_retries",
    # Handle classes
    "EventStream",
    "AsyncEventStream",
    "ResilientExecutor",
    "AsyncResilientExecutor",
]

# Use importlib.metadata for version (works with installed package)
# Fall back to hard-coded version for editable installs
try:
    __version__ = version("resilient-streams")
except PackageNotFoundError:
    __version__ = "0.1.0"
