"""
Server-Sent Events (SSE) parsing.

Bytes are decoded incrementally as UTF-8, split into lines by LineSplitter and
assembled into ServerSentEvent records by EventAssembler:
- `event: <name>` sets the event name
- `data: <value>` appends a data line
- `id: <value>` sets the last event ID, which survives across records
- `retry: <ms>` sets the reconnection hint
- lines starting with `:` are comments
- a blank line ends the record
"""

from __future__ import annotations

import codecs
from collections.abc import AsyncIterator, Callable, Iterator

from resilient_streams._types import ServerSentEvent

FIELD_SEPARATOR = ": "


class LineSplitter:
    """
    Incremental line splitter.

    Holds back the trailing fragment of each chunk until its newline arrives.
    Only `\n` terminates a line; a `\r` stays part of the line text.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> list[str]:
        """
        Feed a chunk of text and return any complete lines.

        Args:
            chunk: String chunk to split

        Returns:
            List of complete lines, without their terminators
        """
        self._buffer += chunk
        if "\n" not in self._buffer:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def finish(self) -> list[str]:
        """
        Flush the pending fragment as a final, unterminated line.

        Returns:
            The fragment as a one-element list, or an empty list
        """
        remaining, self._buffer = self._buffer, ""
        if remaining:
            return [remaining]
        return []


class EventAssembler:
    """
    Assembles lines into ServerSentEvent records.

    The event ID is deliberately not cleared when a record is emitted: it
    keeps "last event ID" semantics, so a later record without an `id:` line
    reports the previous one. Only a new `id:` line or reset() replaces it.
    """

    def __init__(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []
        self._id: str | None = None
        self._retry: int | None = None

        self._fields: dict[str, Callable[[str], None]] = {
            "event": self._set_event,
            "data": self._append_data,
            "id": self._set_id,
            "retry": self._set_retry,
        }

    def decode(self, line: str) -> ServerSentEvent | None:
        """
        Decode one line.

        Args:
            line: A single line without its terminator

        Returns:
            The completed record if the line was a record boundary, else None
        """
        if not line:
            return self._emit()

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(FIELD_SEPARATOR)
        if not sep:
            return None

        handler = self._fields.get(name)
        if handler is not None:
            handler(value)
        return None

    def reset(self) -> None:
        """Clear all accumulated state, including the last event ID."""
        self._event = None
        self._data = []
        self._id = None
        self._retry = None

    def _emit(self) -> ServerSentEvent | None:
        if not self._event and not self._data and not self._id:
            return None

        event = ServerSentEvent(
            event=self._event,
            data="\n".join(self._data),
            id=self._id,
            retry=self._retry,
        )
        self._event = None
        self._data = []
        self._retry = None
        return event

    def _set_event(self, value: str) -> None:
        self._event = value

    def _append_data(self, value: str) -> None:
        self._data.append(value)

    def _set_id(self, value: str) -> None:
        self._id = value

    def _set_retry(self, value: str) -> None:
        if value.isascii() and value.isdigit():
            self._retry = int(value)


def _decode_lines(
    lines: list[str], assembler: EventAssembler
) -> Iterator[ServerSentEvent]:
    for line in lines:
        event = assembler.decode(line)
        if event is not None:
            yield event


def parse_sse_sync(byte_iterator: Iterator[bytes]) -> Iterator[ServerSentEvent]:
    """
    Parse SSE events from a synchronous byte iterator.

    Uses incremental UTF-8 decoding to handle multi-byte characters
    that may be split across chunk boundaries. A record that is still
    open when the input ends is dropped.

    Args:
        byte_iterator: Iterator yielding bytes

    Yields:
        Parsed SSE events
    """
    splitter = LineSplitter()
    assembler = EventAssembler()
    decoder = codecs.getincrementaldecoder("utf-8")("replace")

    for chunk in byte_iterator:
        text = decoder.decode(chunk)
        if text:
            yield from _decode_lines(splitter.feed(text), assembler)

    final_text = decoder.decode(b"", final=True)
    if final_text:
        yield from _decode_lines(splitter.feed(final_text), assembler)

    yield from _decode_lines(splitter.finish(), assembler)


async def parse_sse_async(
    byte_iterator: AsyncIterator[bytes],
) -> AsyncIterator[ServerSentEvent]:
    """
    Parse SSE events from an asynchronous byte iterator.

    Async counterpart of parse_sse_sync with identical framing rules.

    Args:
        byte_iterator: Async iterator yielding bytes

    Yields:
        Parsed SSE events
    """
    splitter = LineSplitter()
    assembler = EventAssembler()
    decoder = codecs.getincrementaldecoder("utf-8")("replace")

    async for chunk in byte_iterator:
        text = decoder.decode(chunk)
        if text:
            for event in _decode_lines(splitter.feed(text), assembler):
                yield event

    final_text = decoder.decode(b"", final=True)
    if final_text:
        for event in _decode_lines(splitter.feed(final_text), assembler):
            yield event

    for event in _decode_lines(splitter.finish(), assembler):
        yield event
