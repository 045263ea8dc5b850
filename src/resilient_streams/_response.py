"""
Event stream response objects.

EventStream and AsyncEventStream wrap an open byte source and expose it as a
one-shot sequence of ServerSentEvent records with the stream's termination
rules applied:
- an `error` event raises StreamProtocolError with the event data
- a `done` event is yielded and then the stream ends without further reads
- the end of the byte source ends the stream quietly
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator

from resilient_streams._errors import StreamConsumedError, StreamProtocolError
from resilient_streams._sse import parse_sse_async, parse_sse_sync
from resilient_streams._types import (
    DONE_EVENT,
    ERROR_EVENT,
    OUTPUT_EVENT,
    ServerSentEvent,
)

logger = logging.getLogger(__name__)


class EventStream:
    """
    Synchronous event stream.

    This is a one-shot object - you can consume it in exactly one mode.
    Attempting to consume it again raises StreamConsumedError.

    Usage as a context manager is recommended:

        with stream(url) as events:
            for event in events:
                process(event)

    Consumption modes (choose ONE):
    - Iteration: `for event in events` yields ServerSentEvent records
    - `iter_text()`: yields the rendered text of `output` events
    """

    def __init__(
        self,
        byte_iterator: Iterator[bytes],
        *,
        close: Callable[[], None] | None = None,
        url: str | None = None,
    ) -> None:
        self._byte_iterator = byte_iterator
        self._close = close
        self._url = url

        self._consumed_by: str | None = None
        self._closed = False
        self._last_event_id: str | None = None

    def _ensure_not_consumed(self, method: str) -> None:
        """Raise if already consumed."""
        if self._consumed_by is not None:
            raise StreamConsumedError(
                attempted_method=method,
                consumed_by=self._consumed_by,
            )

    def _mark_consumed(self, method: str) -> None:
        """Mark as consumed by the given method."""
        self._consumed_by = method

    @property
    def url(self) -> str | None:
        """The URL the stream was opened from, if any."""
        return self._url

    @property
    def last_event_id(self) -> str | None:
        """The ID carried by the most recently yielded event."""
        return self._last_event_id

    @property
    def closed(self) -> bool:
        """Whether the stream is closed."""
        return self._closed

    def close(self) -> None:
        """Close the stream and release resources."""
        if not self._closed:
            self._closed = True
            logger.debug("Closing event stream %s", self._url)
            if self._close is not None:
                self._close()

    def __enter__(self) -> EventStream:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[ServerSentEvent]:
        """Iterate over events until `done`, an `error` event, or end of input."""
        self._ensure_not_consumed("__iter__")
        self._mark_consumed("__iter__")
        return self._iter_events_internal()

    def _iter_events_internal(self) -> Iterator[ServerSentEvent]:
        try:
            for event in parse_sse_sync(self._byte_iterator):
                if event.event == ERROR_EVENT:
                    logger.debug("Error event on %s: %s", self._url, event.data)
                    raise StreamProtocolError(event.data, event=event)

                self._last_event_id = event.id
                yield event

                if event.event == DONE_EVENT:
                    logger.debug("Done event on %s", self._url)
                    return
        finally:
            self.close()

    def iter_text(self) -> Iterator[str]:
        """
        Iterate over the text of `output` events.

        Yields:
            The data of each `output` event
        """
        self._ensure_not_consumed("iter_text")
        self._mark_consumed("iter_text")
        return self._iter_text_internal()

    def _iter_text_internal(self) -> Iterator[str]:
        for event in self._iter_events_internal():
            if event.event == OUTPUT_EVENT:
                yield str(event)


class AsyncEventStream:
    """
    Asynchronous event stream.

    Async counterpart of EventStream:

        async with astream(url) as events:
            async for event in events:
                process(event)
    """

    def __init__(
        self,
        byte_iterator: AsyncIterator[bytes],
        *,
        aclose: Callable[[], Awaitable[None]] | None = None,
        url: str | None = None,
    ) -> None:
        self._byte_iterator = byte_iterator
        self._aclose = aclose
        self._url = url

        self._consumed_by: str | None = None
        self._closed = False
        self._last_event_id: str | None = None

    def _ensure_not_consumed(self, method: str) -> None:
        """Raise if already consumed."""
        if self._consumed_by is not None:
            raise StreamConsumedError(
                attempted_method=method,
                consumed_by=self._consumed_by,
            )

    def _mark_consumed(self, method: str) -> None:
        """Mark as consumed by the given method."""
        self._consumed_by = method

    @property
    def url(self) -> str | None:
        """The URL the stream was opened from, if any."""
        return self._url

    @property
    def last_event_id(self) -> str | None:
        """The ID carried by the most recently yielded event."""
        return self._last_event_id

    @property
    def closed(self) -> bool:
        """Whether the stream is closed."""
        return self._closed

    async def aclose(self) -> None:
        """Close the stream and release resources."""
        if not self._closed:
            self._closed = True
            logger.debug("Closing event stream %s", self._url)
            if self._aclose is not None:
                await self._aclose()

    async def __aenter__(self) -> AsyncEventStream:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def __aiter__(self) -> AsyncIterator[ServerSentEvent]:
        """Iterate over events until `done`, an `error` event, or end of input."""
        self._ensure_not_consumed("__aiter__")
        self._mark_consumed("__aiter__")
        return self._iter_events_internal()

    async def _iter_events_internal(self) -> AsyncIterator[ServerSentEvent]:
        try:
            async for event in parse_sse_async(self._byte_iterator):
                if event.event == ERROR_EVENT:
                    logger.debug("Error event on %s: %s", self._url, event.data)
                    raise StreamProtocolError(event.data, event=event)

                self._last_event_id = event.id
                yield event

                if event.event == DONE_EVENT:
                    logger.debug("Done event on %s", self._url)
                    return
        finally:
            await self.aclose()

    def iter_text(self) -> AsyncIterator[str]:
        """
        Iterate over the text of `output` events.

        Yields:
            The data of each `output` event
        """
        self._ensure_not_consumed("iter_text")
        self._mark_consumed("iter_text")
        return self._iter_text_internal()

    async def _iter_text_internal(self) -> AsyncIterator[str]:
        async for event in self._iter_events_internal():
            if event.event == OUTPUT_EVENT:
                yield str(event)
