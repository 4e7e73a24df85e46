"""Test doubles shared across the suite."""

from __future__ import annotations

from typing import Any

import httpx

from chatsync.adapters.base import EventChannel
from chatsync.adapters.http import HTTPClient
from chatsync.client import Client
from chatsync.config import Settings
from chatsync.core.events import ConnectionState
from chatsync.errors import TransportError


class FakeEventChannel(EventChannel):
    """Event channel driven by the test instead of a socket."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.sent: list[dict[str, Any]] = []
        self.connected_to: tuple[str, str] | None = None

    async def connect(self, url: str, token: str) -> None:
        self._set_state(ConnectionState.CONNECTING)
        if self.fail:
            self._set_state(ConnectionState.DISCONNECTED)
            raise TransportError("refused")
        self.connected_to = (url, token)
        await self.send({"type": "Authenticate", "token": token})
        self._set_state(ConnectionState.CONNECTED)

    async def send(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    async def disconnect(self) -> None:
        self._set_state(ConnectionState.DISCONNECTED)

    def deliver(self, *events: Any) -> None:
        for event in events:
            self.emit("event", event)


class Recorder:
    """Collects domain events emitted by a client."""

    NAMES = [
        f"{kind}_{action}"
        for kind in ("user", "server", "channel", "member", "emoji", "message")
        for action in ("create", "update", "delete")
    ] + ["ready", "error", "state"]

    def __init__(self, client: Client) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []
        for name in self.NAMES:
            client.on(name, self._listener(name))

    def _listener(self, name: str):
        def record(*args: Any) -> None:
            self.events.append((name, args))

        return record

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [args for event, args in self.events if event == name]


def _unrouted(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request {request.method} {request.url}")


def make_client(handler=_unrouted, *, events: EventChannel | None = None, **settings: Any) -> Client:
    """Build a bot-authenticated client whose REST calls go to ``handler``."""
    api = HTTPClient(
        "https://api.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    api.authenticate("BOT")
    return Client(
        Settings(api_url="https://api.test", **settings),
        api=api,
        events=events or FakeEventChannel(),
    )
