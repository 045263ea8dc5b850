"""
Tests for stream() and astream().

The HTTP client is mocked; responses yield pre-split byte chunks.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from resilient_streams import (
    EventStream,
    ServerSentEvent,
    StreamConsumedError,
    StreamProtocolError,
    TransportError,
    astream,
    stream,
)

from .conftest import (
    MockStreamResponse,
    get_request_headers,
    setup_mock_async_client,
    setup_mock_client,
)

URL = "https://example.com/predictions/abc/stream"


class TestStreamRequest:
    """Tests for the initial stream request."""

    def test_sends_event_stream_accept_header(self) -> None:
        client = setup_mock_client(MockStreamResponse(b""))

        stream(URL, client=client, headers={"Accept": "application/json"}).close()

        headers = get_request_headers(client)
        assert headers["Accept"] == "text/event-stream"
        assert "accept" not in headers

    def test_passes_method_and_extra_kwargs(self) -> None:
        client = setup_mock_client(MockStreamResponse(b""))

        stream(URL, method="POST", client=client, json={"input": 1}).close()

        call_args = client.build_request.call_args
        assert call_args[0][0] == "POST"
        assert call_args[0][1] == URL
        assert call_args.kwargs["json"] == {"input": 1}
        client.send.assert_called_once()
        assert client.send.call_args.kwargs["stream"] is True

    def test_resolves_callable_headers(self) -> None:
        client = setup_mock_client(MockStreamResponse(b""))

        stream(URL, client=client, headers={"Authorization": lambda: "Bearer t"}).close()

        assert get_request_headers(client)["Authorization"] == "Bearer t"

    def test_raises_transport_error_on_failure_status(self) -> None:
        response = MockStreamResponse(
            b"rate limited", status_code=429, headers={"Retry-After": "3"}
        )
        client = setup_mock_client(response)

        with pytest.raises(TransportError) as exc_info:
            stream(URL, client=client)

        assert exc_info.value.status == 429
        assert exc_info.value.body == "rate limited"
        assert exc_info.value.headers["retry-after"] == "3"
        assert response.closed
        client.send.assert_called_once()

    def test_closes_response_when_error_body_read_fails(self) -> None:
        response = MockStreamResponse(
            status_code=502, read_error=httpx.ReadError("connection lost")
        )
        client = setup_mock_client(response)

        with pytest.raises(httpx.ReadError):
            stream(URL, client=client)

        assert response.closed

    def test_does_not_close_caller_client(self) -> None:
        client = setup_mock_client(MockStreamResponse(b"data: x\n\n"))

        with stream(URL, client=client) as events:
            list(events)

        client.close.assert_not_called()

    def test_closes_own_client_on_failure(self) -> None:
        mock_client = setup_mock_client(MockStreamResponse(b"", status_code=500))

        with patch("httpx.Client", return_value=mock_client):
            with pytest.raises(TransportError):
                stream(URL)

        mock_client.close.assert_called_once()

    def test_closes_own_client_with_stream(self) -> None:
        mock_client = setup_mock_client(MockStreamResponse(b"data: x\n\n"))

        with patch("httpx.Client", return_value=mock_client):
            with stream(URL) as events:
                list(events)

        mock_client.close.assert_called_once()


class TestStreamEvents:
    """Tests for event iteration and termination semantics."""

    def test_yields_events(self) -> None:
        response = MockStreamResponse(
            [b"event: output\ndata: hel", b"lo\n\nevent: output\ndata: world\n\n"]
        )
        client = setup_mock_client(response)

        with stream(URL, client=client) as events:
            result = list(events)

        assert result == [
            ServerSentEvent(event="output", data="hello"),
            ServerSentEvent(event="output", data="world"),
        ]
        assert response.closed

    def test_error_event_raises(self) -> None:
        response = MockStreamResponse(
            [
                b"event: output\ndata: first\n\n",
                b"event: error\ndata: boom\n\n",
                b"event: output\ndata: never\n\n",
            ]
        )
        client = setup_mock_client(response)
        seen: list[ServerSentEvent] = []

        with pytest.raises(StreamProtocolError) as exc_info:
            for event in stream(URL, client=client):
                seen.append(event)

        assert str(exc_info.value) == "boom"
        assert exc_info.value.event == ServerSentEvent(event="error", data="boom")
        assert [e.data for e in seen] == ["first"]
        assert response.closed
        assert response.chunks_read == 2

    def test_done_event_stops_reading(self) -> None:
        response = MockStreamResponse(
            [
                b"event: output\ndata: a\n\n",
                b"event: done\ndata: {}\n\nevent: output\ndata: trailing\n\n",
                b"event: output\ndata: never read\n\n",
            ]
        )
        client = setup_mock_client(response)

        events = list(stream(URL, client=client))

        assert [e.event for e in events] == ["output", "done"]
        assert response.chunks_read == 2
        assert response.closed

    def test_end_of_input_without_done(self) -> None:
        response = MockStreamResponse(b"event: output\ndata: a\n\ndata: dangling\n")
        client = setup_mock_client(response)

        events = list(stream(URL, client=client))

        assert [e.data for e in events] == ["a"]
        assert response.closed

    def test_early_break_releases_response(self) -> None:
        response = MockStreamResponse(
            b"event: output\ndata: a\n\nevent: output\ndata: b\n\n"
        )
        client = setup_mock_client(response)

        with stream(URL, client=client) as events:
            for _ in events:
                break

        assert response.closed
        assert events.closed

    def test_tracks_last_event_id(self) -> None:
        client = setup_mock_client(
            MockStreamResponse(b"id: 1\ndata: a\n\ndata: b\n\nid: 2\ndata: c\n\n")
        )

        with stream(URL, client=client) as events:
            ids = [event.id for event in events]

        assert ids == ["1", "1", "2"]
        assert events.last_event_id == "2"

    def test_iter_text_yields_output_only(self) -> None:
        client = setup_mock_client(
            MockStreamResponse(
                b"event: output\ndata: Hello\n\n"
                b"event: logs\ndata: ignored\n\n"
                b"event: output\ndata: , world\n\n"
                b"event: done\ndata: {}\n\n"
            )
        )

        with stream(URL, client=client) as events:
            assert "".join(events.iter_text()) == "Hello, world"

    def test_second_consumption_raises(self) -> None:
        client = setup_mock_client(MockStreamResponse(b"data: a\n\n"))

        events = stream(URL, client=client)
        list(events)

        with pytest.raises(StreamConsumedError):
            events.iter_text()


class TestEventStreamDirect:
    """Tests for EventStream over an arbitrary byte source."""

    def test_wraps_plain_iterator(self) -> None:
        close = MagicMock()
        events = EventStream(iter([b"event: done\ndata: ok\n\n"]), close=close)

        assert [e.data for e in events] == ["ok"]
        close.assert_called_once()

    def test_close_is_idempotent(self) -> None:
        close = MagicMock()
        events = EventStream(iter([]), close=close)

        events.close()
        events.close()

        close.assert_called_once()
        assert events.closed


class TestAstream:
    """Tests for astream()."""

    @pytest.mark.anyio
    async def test_async_context_manager(self) -> None:
        response = MockStreamResponse(
            [b"event: output\ndata: hi\n\n", b"event: done\ndata: {}\n\n"]
        )
        client = setup_mock_async_client(response)

        async with astream(URL, client=client) as events:
            result = [event async for event in events]

        assert [e.event for e in result] == ["output", "done"]
        assert get_request_headers(client)["Accept"] == "text/event-stream"
        assert response.closed

    @pytest.mark.anyio
    async def test_await_then_iterate(self) -> None:
        client = setup_mock_async_client(
            MockStreamResponse(b"event: output\ndata: a\n\nevent: output\ndata: b\n\n")
        )

        events = await astream(URL, client=client)
        async with events:
            text = [chunk async for chunk in events.iter_text()]

        assert text == ["a", "b"]

    @pytest.mark.anyio
    async def test_raises_transport_error(self) -> None:
        response = MockStreamResponse(b"nope", status_code=503)
        client = setup_mock_async_client(response)

        with pytest.raises(TransportError) as exc_info:
            async with astream(URL, client=client):
                pass

        assert exc_info.value.status == 503
        assert response.closed

    @pytest.mark.anyio
    async def test_error_event_raises(self) -> None:
        response = MockStreamResponse(b"event: error\ndata: boom\n\n")
        client = setup_mock_async_client(response)

        with pytest.raises(StreamProtocolError, match="boom"):
            async with astream(URL, client=client) as events:
                async for _ in events:
                    pass

        assert response.closed

    @pytest.mark.anyio
    async def test_closes_own_client(self) -> None:
        mock_client = setup_mock_async_client(MockStreamResponse(b"data: x\n\n"))

        with patch("httpx.AsyncClient", return_value=mock_client):
            async with astream(URL) as events:
                async for _ in events:
                    pass

        mock_client.aclose.assert_awaited_once()


    @pytest.mark.anyio
    async def test_closes_response_when_error_body_read_fails(self) -> None:
        response = MockStreamResponse(
            status_code=502, read_error=httpx.ReadError("connection lost")
        )
        client = setup_mock_async_client(response)

        with pytest.raises(httpx.ReadError):
            await astream(URL, client=client)

        assert response.closed

    @pytest.mark.anyio
    async def test_done_event_stops_reading(self) -> None:
        response = MockStreamResponse(
            [
                b"event: output\ndata: a\n\n",
                b"event: done\ndata: {}\n\nevent: output\ndata: trailing\n\n",
                b"event: output\ndata: never read\n\n",
            ]
        )
        client = setup_mock_async_client(response)

        async with astream(URL, client=client) as events:
            result = [event async for event in events]

        assert [e.event for e in result] == ["output", "done"]
        assert response.chunks_read == 2
        assert response.closed

    @pytest.mark.anyio
    async def test_early_break_releases_response(self) -> None:
        response = MockStreamResponse(
            b"event: output\ndata: a\n\nevent: output\ndata: b\n\n"
        )
        client = setup_mock_async_client(response)

        async with astream(URL, client=client) as events:
            async for _ in events:
                break

        assert response.closed
        assert events.closed
