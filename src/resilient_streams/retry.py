"""
Automatic retries for request functions.

ResilientExecutor calls a zero-argument request function through a tenacity
controller: raised exceptions and responses selected by `should_retry` are
retried, waiting as the retry policy decides between attempts.

Attempt count: tenacity makes the initial call plus up to `max_retries`
retries, then its error callback always makes one final call whose result
(or exception) is returned as-is. In the worst case the request function is
therefore called `max_retries + 2` times, and `max_retries=0` still calls it
twice. Callers rely on this count; do not "fix" it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from resilient_streams._retry import RetryableResponse, RetryPolicyWait
from resilient_streams._types import RetryOptions

logger = logging.getLogger(__name__)


def _build_options(options: RetryOptions | None, overrides: dict[str, Any]) -> RetryOptions:
    options = options or RetryOptions()
    if overrides:
        options = dataclasses.replace(options, **overrides)
    return options


def _is_retryable_response(response: httpx.Response, options: RetryOptions) -> bool:
    return not response.is_success and options.should_retry(response)


def _controller_kwargs(options: RetryOptions) -> dict[str, Any]:
    return {
        "retry": retry_if_exception_type(Exception),
        "wait": RetryPolicyWait(options),
        "stop": stop_after_attempt(options.max_retries + 1),
        "before_sleep": before_sleep_log(logger, logging.DEBUG),
    }


def _log_exhausted(retry_state: RetryCallState) -> None:
    logger.debug(
        "Retries exhausted after %d attempts, making final attempt",
        retry_state.attempt_number,
    )


class ResilientExecutor:
    """
    Synchronous retrying executor.

    Example:
        >>> executor = ResilientExecutor(
        ...     RetryOptions(should_retry=lambda r: r.status_code == 429)
        ... )
        >>> response = executor.execute(lambda: client.get(url))
    """

    def __init__(
        self,
        options: RetryOptions | None = None,
        *,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.options = options or RetryOptions()
        self._sleep = sleep or time.sleep

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    def execute(self, request: Callable[[], httpx.Response]) -> httpx.Response:
        """
        Call `request` until it succeeds or retries run out.

        Args:
            request: Zero-argument function returning a response or raising

        Returns:
            The first response that is successful or not retryable, or the
            result of the final attempt

        Raises:
            Exception: Whatever the final attempt raises
        """
        options = self.options

        def attempt() -> httpx.Response:
            response = request()
            if _is_retryable_response(response, options):
                response.close()
                raise RetryableResponse(response)
            return response

        def final_attempt(retry_state: RetryCallState) -> httpx.Response:
            _log_exhausted(retry_state)
            return request()

        retrying = Retrying(
            sleep=self._pause,
            retry_error_callback=final_attempt,
            **_controller_kwargs(options),
        )
        return retrying(attempt)


class AsyncResilientExecutor:
    """
    Asynchronous retrying executor.

    Async counterpart of ResilientExecutor; `request` returns an awaitable.
    """

    def __init__(
        self,
        options: RetryOptions | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self.options = options or RetryOptions()
        self._sleep = sleep or asyncio.sleep

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    async def execute(
        self, request: Callable[[], Awaitable[httpx.Response]]
    ) -> httpx.Response:
        """Async version of ResilientExecutor.execute()."""
        options = self.options

        async def attempt() -> httpx.Response:
            response = await request()
            if _is_retryable_response(response, options):
                await response.aclose()
                raise RetryableResponse(response)
            return response

        def final_attempt(retry_state: RetryCallState) -> Awaitable[httpx.Response]:
            _log_exhausted(retry_state)
            return request()

        retrying = AsyncRetrying(
            sleep=self._pause,
            retry_error_callback=final_attempt,
            **_controller_kwargs(options),
        )
        result = await retrying(attempt)
        # The error callback hands back the final call still to be awaited.
        if inspect.isawaitable(result):
            result = await result
        return result


def with_automatic_retries(
    request: Callable[[], httpx.Response],
    options: RetryOptions | None = None,
    **overrides: Any,
) -> httpx.Response:
    """
    Call `request` with automatic retries.

    Args:
        request: Zero-argument function returning a response or raising
        options: Retry configuration (defaults to RetryOptions())
        **overrides: Field overrides for the options (max_retries, interval, ...)

    Returns:
        The final response

    Example:
        >>> response = with_automatic_retries(
        ...     lambda: client.get(url),
        ...     should_retry=lambda r: r.status_code == 429 or r.status_code >= 500,
        ... )
    """
    return ResilientExecutor(_build_options(options, overrides)).execute(request)


async def awith_automatic_retries(
    request: Callable[[], Awaitable[httpx.Response]],
    options: RetryOptions | None = None,
    **overrides: Any,
) -> httpx.Response:
    """Async version of with_automatic_retries()."""
    executor = AsyncResilientExecutor(_build_options(options, overrides))
    return await executor.execute(request)
