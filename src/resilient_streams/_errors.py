"""
Exception hierarchy for the resilient-streams client.

This module defines all exceptions that can be raised by the library.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from resilient_streams._types import ServerSentEvent


class ResilientStreamError(Exception):
    """
    Base exception for all resilient-streams errors.

    Attributes:
        message: Human-readable error message
        status: HTTP status code (if applicable)
        code: Error code for programmatic handling
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details

    def __str__(self) -> str:
        parts = [self.message]
        if self.status is not None:
            parts.append(f"(status={self.status})")
        if self.code is not None:
            parts.append(f"[{self.code}]")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"status={self.status!r}, "
            f"code={self.code!r})"
        )


class TransportError(ResilientStreamError):
    """
    Exception for a non-success HTTP status.

    Raised when the initial event-stream request is rejected by the server.
    It carries the response metadata so the retry executor can honour a
    ``Retry-After`` header when the failing call is wrapped in retries.

    Attributes:
        status: HTTP status code
        url: The URL that was being fetched
        headers: Response headers
        body: Response body (if it was read)
    """

    def __init__(
        self,
        message: str,
        status: int,
        url: str | None = None,
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
    ) -> None:
        super().__init__(message, status=status, code="HTTP_ERROR", details=body)
        self.url = url
        self.headers = headers or {}
        self.body = body


class StreamProtocolError(ResilientStreamError):
    """
    Exception raised when the server sends an ``error`` event.

    The event data becomes the message; no further events are produced.
    """

    def __init__(self, message: str, event: ServerSentEvent | None = None) -> None:
        super().__init__(message, code="STREAM_ERROR")
        self.event = event

    def __str__(self) -> str:
        return self.message


class StreamConsumedError(ResilientStreamError):
    """
    Exception raised when attempting to consume an event stream twice.

    EventStream is a one-shot object - it can only be consumed in one mode.
    """

    def __init__(
        self,
        message: str = "Stream has already been consumed",
        attempted_method: str | None = None,
        consumed_by: str | None = None,
    ) -> None:
        if attempted_method and consumed_by:
            message = (
                f"Cannot call {attempted_method}() - stream was already consumed "
                f"via {consumed_by}()"
            )
        super().__init__(message, code="ALREADY_CONSUMED")
        self.attempted_method = attempted_method
        self.consumed_by = consumed_by


def error_from_status(
    status: int,
    url: str,
    body: str | bytes | None = None,
    headers: dict[str, str] | None = None,
) -> TransportError:
    """
    Create a TransportError from an HTTP status code.

    Args:
        status: The HTTP status code
        url: The URL that was requested
        body: The response body (if available)
        headers: The response headers (if available)

    Returns:
        A TransportError instance
    """
    return TransportError(
        f"HTTP error {status} at {url}",
        status=status,
        url=url,
        headers=headers,
        body=body,
    )
