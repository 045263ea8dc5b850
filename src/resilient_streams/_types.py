"""
Core types for the resilient-streams client.

This module defines the event record, retry configuration and protocol
constants used throughout the library.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


# Protocol constants
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"
RETRY_AFTER_HEADER = "Retry-After"

OUTPUT_EVENT = "output"
ERROR_EVENT = "error"
DONE_EVENT = "done"

DEFAULT_MAX_RETRIES = 5
DEFAULT_INTERVAL_MS = 500.0
DEFAULT_JITTER_MS = 100.0


# Type for headers - can be static strings or callables
HeadersLike = dict[str, str | Callable[[], str]]


@dataclass(frozen=True, slots=True)
class ServerSentEvent:
    """
    A single decoded event-stream record.

    Attributes:
        event: The event name (``"output"``, ``"error"``, ``"done"`` or None)
        data: All ``data`` lines of the record joined with newlines
        id: The last seen event ID (carried over between records)
        retry: Reconnection time hint in milliseconds, if the server sent one
    """

    event: str | None = None
    data: str = ""
    id: str | None = None
    retry: int | None = None

    def __str__(self) -> str:
        if self.event == OUTPUT_EVENT:
            return self.data
        return ""


def _never_retry(response: httpx.Response) -> bool:  # noqa: ARG001
    return False


@dataclass(frozen=True)
class RetryOptions:
    """
    Configuration for automatic request retries.

    Attributes:
        should_retry: Predicate deciding whether a failed response is retryable
        max_retries: Number of retries before the final unconditional attempt
        interval: Base backoff delay in milliseconds
        jitter: Upper bound of the random jitter added to backoff, in milliseconds
        rng: Random source used for jitter
    """

    should_retry: Callable[[httpx.Response], bool] = _never_retry
    max_retries: int = DEFAULT_MAX_RETRIES
    interval: float = DEFAULT_INTERVAL_MS
    jitter: float = DEFAULT_JITTER_MS
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.interval < 0:
            raise ValueError(f"interval must be >= 0, got {self.interval}")
        if self.jitter < 0:
            raise ValueError(f"jitter must be >= 0, got {self.jitter}")
