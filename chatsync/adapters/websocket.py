"""WebSocket event channel built on :mod:`aiohttp`."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import aiohttp

from ..core.events import ConnectionState, ErrorEvent
from ..errors import MalformedPayload, TransportError
from . import protocol
from .base import EventChannel

log = logging.getLogger(__name__)


class WebSocketEventChannel(EventChannel):
    """Event channel reading JSON frames from the service's event socket.

    Frames are decoded and emitted from a single reader task, so listeners
    observe events strictly one after another.  Reconnection is left to the
    owner: after an unexpected close the channel reports ``disconnected``
    and an ``error`` and stays closed.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        ping_interval: float = 30.0,
    ) -> None:
        super().__init__()
        self._session = session
        self._owns_session = session is None
        self._ping_interval = ping_interval
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._pinger: asyncio.Task[None] | None = None
        self._closing = False

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def connect(self, url: str, token: str) -> None:
        if self._ws is not None and not self._ws.closed:
            raise TransportError("event channel is already connected")

        self._closing = False
        self._set_state(ConnectionState.CONNECTING)
        session = self._ensure_session()
        try:
            self._ws = await session.ws_connect(
                url,
                params={"version": str(protocol.PROTOCOL_VERSION), "format": "json"},
            )
            await self.send(protocol.authenticate(token))
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            self._ws = None
            self._set_state(ConnectionState.DISCONNECTED)
            raise TransportError(f"could not connect to {url}: {exc}") from exc

        self._set_state(ConnectionState.CONNECTED)
        self._reader = asyncio.create_task(self._read_loop(), name="chatsync-events")
        if self._ping_interval > 0:
            self._pinger = asyncio.create_task(self._ping_loop(), name="chatsync-ping")

    async def send(self, payload: dict[str, Any]) -> None:
        if self._ws is None or self._ws.closed:
            raise TransportError("event channel is not connected")
        await self._ws.send_json(payload)

    async def disconnect(self) -> None:
        self._closing = True
        if self._pinger is not None:
            self._pinger.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pinger
            self._pinger = None
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._reader is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
            self._reader = None
        self._ws = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        self._set_state(ConnectionState.DISCONNECTED)

    # ------------------------------------------------------------------
    # Internal: socket session
    # ------------------------------------------------------------------
    async def _read_loop(self) -> None:
        assert self._ws is not None
        ws = self._ws
        failure: str | None = None

        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    failure = f"socket error: {ws.exception()}"
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.exception("Event reader crashed")
            failure = f"reader failed: {exc!r}"
            await ws.close()
        finally:
            if failure is None and not self._closing:
                failure = f"socket closed unexpectedly (code={ws.close_code})"

            # always report the loss, whatever ended the loop
            self._set_state(ConnectionState.DISCONNECTED)
            if failure is not None and not self._closing:
                log.error("Event channel lost: %s", failure)
                self.emit("error", TransportError(failure))

    async def _ping_loop(self) -> None:
        counter = 0
        while True:
            await asyncio.sleep(self._ping_interval)
            try:
                await self.send(protocol.ping(counter))
            except (TransportError, ConnectionResetError):
                return
            counter += 1

    def _handle_frame(self, raw: str) -> None:
        try:
            events = protocol.decode(json.loads(raw))
        except (MalformedPayload, json.JSONDecodeError) as exc:
            log.warning("Dropping unreadable frame: %s", exc)
            return

        for event in events:
            if isinstance(event, ErrorEvent):
                log.error("Server reported error: %s", event.error)
                self.emit("error", TransportError(event.error))
                continue
            self.emit("event", event)
