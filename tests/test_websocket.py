"""Tests for :class:`WebSocketEventChannel`.

Frame handling is tested directly; the connection lifecycle runs against a
local :mod:`aiohttp.web` server.
"""

import asyncio
import json

import pytest
from aiohttp import test_utils, web

from chatsync.adapters.websocket import WebSocketEventChannel
from chatsync.core.events import (
    AuthenticatedEvent,
    ConnectionState,
    CreateEvent,
    EntityKind,
)
from chatsync.errors import TransportError


def collect(channel: WebSocketEventChannel, name: str) -> list:
    seen: list = []
    channel.on(name, seen.append)
    return seen


def test_frames_are_emitted_as_events() -> None:
    channel = WebSocketEventChannel()
    events = collect(channel, "event")

    channel._handle_frame(json.dumps({"type": "ChannelCreate", "_id": "C1"}))

    assert events == [CreateEvent(EntityKind.CHANNEL, {"_id": "C1"})]


def test_unreadable_frames_are_dropped() -> None:
    channel = WebSocketEventChannel()
    events = collect(channel, "event")
    errors = collect(channel, "error")

    channel._handle_frame("not json")
    channel._handle_frame(json.dumps({"no": "type"}))
    channel._handle_frame(json.dumps({"type": "MessageUpdate", "id": "M1", "data": None}))

    assert events == []
    assert errors == []


def test_bulk_frame_keeps_valid_items() -> None:
    """Only the broken item of a Bulk frame is lost."""
    channel = WebSocketEventChannel()
    events = collect(channel, "event")

    channel._handle_frame(
        json.dumps(
            {
                "type": "Bulk",
                "v": [
                    {"type": "ChannelCreate", "_id": "C1"},
                    {"type": "ChannelDelete"},
                    {"type": "ChannelCreate", "_id": "C2"},
                ],
            }
        )
    )

    assert [event.data["_id"] for event in events] == ["C1", "C2"]


def test_server_errors_become_transport_errors() -> None:
    channel = WebSocketEventChannel()
    errors = collect(channel, "error")

    channel._handle_frame(json.dumps({"type": "Error", "error": "InvalidSession"}))

    assert len(errors) == 1
    assert isinstance(errors[0], TransportError)
    assert "InvalidSession" in str(errors[0])


def test_send_requires_connection() -> None:
    channel = WebSocketEventChannel()

    assert channel.state is ConnectionState.DISCONNECTED
    with pytest.raises(TransportError):
        asyncio.run(channel.send({"type": "Ping", "data": 0}))


def _app(handler) -> web.Application:
    app = web.Application()
    app.router.add_get("/", handler)
    return app


def test_connect_authenticates_and_reports_unexpected_close() -> None:
    """The server closing the socket surfaces as ``disconnected`` then ``error``."""
    queries: list[dict[str, str]] = []
    received: list[dict] = []

    async def handler(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        queries.append(dict(request.query))
        received.append(await ws.receive_json())
        await ws.send_json({"type": "Authenticated"})
        await ws.send_json({"type": "ChannelCreate", "_id": "C1"})
        await ws.close()
        return ws

    channel = WebSocketEventChannel(ping_interval=0)
    states = collect(channel, "state")
    events = collect(channel, "event")
    order: list[str] = []
    channel.on("state", lambda state: order.append(f"state:{state.value}"))
    channel.on("error", lambda error: order.append("error"))

    async def scenario() -> None:
        async with test_utils.TestServer(_app(handler)) as server:
            await channel.connect(str(server.make_url("/")), "TOKEN")
            await asyncio.wait_for(channel._reader, timeout=5)
            await channel.disconnect()

    asyncio.run(scenario())

    assert queries == [{"version": "1", "format": "json"}]
    assert received == [{"type": "Authenticate", "token": "TOKEN"}]
    assert events == [
        AuthenticatedEvent(),
        CreateEvent(EntityKind.CHANNEL, {"_id": "C1"}),
    ]
    assert states == [
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
    ]
    assert order[-2:] == ["state:disconnected", "error"]


def test_connect_failure_raises_transport_error() -> None:
    """A refused handshake becomes :class:`TransportError`."""

    async def handler(request: web.Request) -> web.Response:
        return web.Response(status=403)

    channel = WebSocketEventChannel(ping_interval=0)
    states = collect(channel, "state")

    async def scenario() -> None:
        async with test_utils.TestServer(_app(handler)) as server:
            with pytest.raises(TransportError):
                await channel.connect(str(server.make_url("/")), "TOKEN")
            await channel.disconnect()

    asyncio.run(scenario())

    assert states == [ConnectionState.CONNECTING, ConnectionState.DISCONNECTED]
    assert channel.state is ConnectionState.DISCONNECTED


def test_pings_and_clean_disconnect() -> None:
    """Pings count up and a requested disconnect raises no error."""
    received: list[dict] = []
    got_pings = asyncio.Event()

    async def handler(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        async for msg in ws:
            received.append(json.loads(msg.data))
            if len(received) == 3:
                got_pings.set()
        return ws

    channel = WebSocketEventChannel(ping_interval=0.01)
    errors = collect(channel, "error")

    async def scenario() -> None:
        async with test_utils.TestServer(_app(handler)) as server:
            await channel.connect(str(server.make_url("/")), "TOKEN")
            await asyncio.wait_for(got_pings.wait(), timeout=5)
            await channel.disconnect()

    asyncio.run(scenario())

    assert received[:3] == [
        {"type": "Authenticate", "token": "TOKEN"},
        {"type": "Ping", "data": 0},
        {"type": "Ping", "data": 1},
    ]
    assert errors == []
    assert channel.state is ConnectionState.DISCONNECTED


def test_reader_crash_still_reports_disconnect() -> None:
    """An unexpected failure inside the reader is reported, not swallowed."""

    async def handler(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        await ws.send_str("{}")
        async for _ in ws:
            pass
        return ws

    channel = WebSocketEventChannel(ping_interval=0)
    errors = collect(channel, "error")

    def crash(raw: str) -> None:
        raise RuntimeError("handler bug")

    channel._handle_frame = crash

    async def scenario() -> None:
        async with test_utils.TestServer(_app(handler)) as server:
            await channel.connect(str(server.make_url("/")), "TOKEN")
            await asyncio.wait_for(channel._reader, timeout=5)
            await channel.disconnect()

    asyncio.run(scenario())

    assert channel.state is ConnectionState.DISCONNECTED
    assert len(errors) == 1
    assert "handler bug" in str(errors[0])
