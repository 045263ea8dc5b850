"""
Retry timing policy.

Pure functions deciding how long to wait before the next attempt, plus the
tenacity wait strategy built on them. Whether a failed response is retryable
at all is the caller's `should_retry` predicate; this module only owns the
timing once a failure is in hand.

Failures are classified into a small tagged variant so the policy never has
to inspect exception shapes:
- TransportFailure: an HTTP status with response headers
- GenericFailure: anything else (network errors, timeouts, bugs)

Every delay is clamped to MAX_DELAY_MS, the longest wait `time.sleep` and
`asyncio.sleep` accept without overflowing.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx
from tenacity import RetryCallState
from tenacity.wait import wait_base

from resilient_streams._errors import TransportError
from resilient_streams._types import RETRY_AFTER_HEADER, RetryOptions
from resilient_streams._util import get_header, parse_httpx_headers

MAX_DELAY_MS = threading.TIMEOUT_MAX * 1000.0


@dataclass(frozen=True, slots=True)
class TransportFailure:
    """A failure that carries HTTP response metadata."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GenericFailure:
    """A failure without response metadata."""

    message: str


Failure = TransportFailure | GenericFailure


class RetryableResponse(Exception):
    """
    A returned response the caller's predicate selected for retry.

    Raised around the request function so that tenacity treats the response
    like any other failed attempt. The response is already closed.
    """

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"Retryable response with status {response.status_code}")
        self.response = response


def classify_failure(exc: BaseException) -> Failure:
    """
    Classify a raised exception.

    Args:
        exc: The exception raised by a request function

    Returns:
        TransportFailure if the exception carries a response, else GenericFailure
    """
    if isinstance(exc, RetryableResponse):
        return failure_from_response(exc.response)
    if isinstance(exc, TransportError):
        return TransportFailure(status=exc.status or 0, headers=dict(exc.headers))
    if isinstance(exc, httpx.HTTPStatusError):
        return failure_from_response(exc.response)
    return GenericFailure(message=str(exc) or exc.__class__.__name__)


def failure_from_response(response: httpx.Response) -> TransportFailure:
    """Wrap a failed response as a TransportFailure."""
    return TransportFailure(
        status=response.status_code,
        headers=parse_httpx_headers(response.headers),
    )


def _clamp_delay(delay_ms: float) -> float:
    if math.isnan(delay_ms) or delay_ms <= 0:
        return 0.0
    return min(delay_ms, MAX_DELAY_MS)


def parse_retry_after(
    value: str | None,
    now: datetime | None = None,
) -> float | None:
    """
    Parse a Retry-After header value.

    Args:
        value: Header value, either integer seconds or an HTTP date
        now: Reference time for date values (defaults to the current UTC time)

    Returns:
        Delay in milliseconds between 0 and MAX_DELAY_MS, or None if absent
        or unparsable
    """
    if not value:
        return None

    value = value.strip()
    try:
        seconds = int(value)
    except ValueError:
        pass
    else:
        # Compare before converting: a huge integer does not fit in a float.
        if seconds <= 0:
            return 0.0
        if seconds * 1000 >= MAX_DELAY_MS:
            return MAX_DELAY_MS
        return seconds * 1000.0

    try:
        target_time = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None

    if target_time is None:
        return None
    if target_time.tzinfo is None:
        target_time = target_time.replace(tzinfo=timezone.utc)

    reference = now or datetime.now(timezone.utc)
    delta_ms = (target_time - reference).total_seconds() * 1000.0
    if not math.isfinite(delta_ms):
        return None
    return _clamp_delay(delta_ms)


def backoff_delay(attempts: int, options: RetryOptions) -> float:
    """
    Exponential backoff with additive jitter.

    Args:
        attempts: Number of attempts already retried
        options: Retry configuration

    Returns:
        `interval * 2 ** attempts` plus a random jitter, in milliseconds,
        capped at MAX_DELAY_MS
    """
    try:
        base = math.ldexp(options.interval, attempts)
    except OverflowError:
        return MAX_DELAY_MS
    return _clamp_delay(base + options.rng.uniform(0, options.jitter))


def compute_delay(failure: Failure, attempts: int, options: RetryOptions) -> float:
    """
    Compute the delay before the next attempt.

    A Retry-After header on a TransportFailure takes priority; otherwise the
    exponential backoff is used.
    """
    if isinstance(failure, TransportFailure):
        retry_after = parse_retry_after(get_header(failure.headers, RETRY_AFTER_HEADER))
        if retry_after is not None:
            return retry_after
    return backoff_delay(attempts, options)


class RetryPolicyWait(wait_base):
    """Tenacity wait strategy applying compute_delay to the last outcome."""

    def __init__(self, options: RetryOptions) -> None:
        self._options = options

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return 0.0

        failure = classify_failure(outcome.exception())
        attempts = retry_state.attempt_number - 1
        return compute_delay(failure, attempts, self._options) / 1000.0
