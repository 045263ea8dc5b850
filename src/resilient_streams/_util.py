"""
Shared utility functions for the resilient-streams client.

This module provides helpers used by both sync and async implementations.
"""

from __future__ import annotations

from typing import Any

from resilient_streams._types import EVENT_STREAM_CONTENT_TYPE, HeadersLike


def resolve_headers_sync(headers: HeadersLike | None) -> dict[str, str]:
    """
    Resolve headers from HeadersLike to a plain dict.

    Supports static string values or callable functions that return strings.

    Args:
        headers: Headers dict with static or callable values

    Returns:
        Resolved headers dict with all string values
    """
    if headers is None:
        return {}

    resolved: dict[str, str] = {}
    for key, value in headers.items():
        if callable(value):
            resolved[key] = value()
        else:
            resolved[key] = value
    return resolved


async def resolve_headers_async(headers: HeadersLike | None) -> dict[str, str]:
    """
    Async version of resolve_headers_sync.

    Supports static string values, sync callables, or async callables.
    """
    if headers is None:
        return {}

    resolved: dict[str, str] = {}
    for key, value in headers.items():
        if callable(value):
            result = value()
            if hasattr(result, "__await__"):
                resolved[key] = await result  # type: ignore[misc]
            else:
                resolved[key] = result
        else:
            resolved[key] = value
    return resolved


def with_event_stream_accept(headers: dict[str, str]) -> dict[str, str]:
    """
    Return a copy of headers asking for an event stream.

    Any caller-supplied Accept header is replaced, whatever its casing.

    Args:
        headers: Resolved request headers

    Returns:
        Headers with `Accept: text/event-stream`
    """
    merged = {k: v for k, v in headers.items() if k.lower() != "accept"}
    merged["Accept"] = EVENT_STREAM_CONTENT_TYPE
    return merged


def parse_httpx_headers(headers: Any) -> dict[str, str]:
    """
    Convert httpx Headers object to a plain dict.

    Args:
        headers: httpx Headers object

    Returns:
        Plain dict of headers
    """
    return dict(headers.items())


def get_header(headers: dict[str, str], name: str) -> str | None:
    """Case-insensitive header lookup on a plain dict."""
    lower_name = name.lower()
    for key, value in headers.items():
        if key.lower() == lower_name:
            return value
    return None
