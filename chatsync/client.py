"""Top-level client owning the entity cache and its synchronisation.

The client holds one collection per entity kind, drives the bootstrap state
machine when the Ready snapshot arrives and afterwards translates live
events into collection mutations followed by client-level domain events
(``server_create``, ``channel_update``, ``member_delete`` and so on).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from .adapters.base import EventChannel, RequestAdapter
from .adapters.http import HTTPClient, Session
from .adapters.websocket import WebSocketEventChannel
from .config import Settings
from .core.collections import (
    ChannelCollection,
    ClassCollection,
    EmojiCollection,
    MessageCollection,
    ServerCollection,
    ServerMemberCollection,
    UserCollection,
)
from .core.emitter import EventEmitter
from .core.events import (
    AuthenticatedEvent,
    ConnectionState,
    CreateEvent,
    DeleteEvent,
    EntityKind,
    ReadyEvent,
    UpdateEvent,
)
from .core.models import User
from .errors import MalformedPayload, TransportError, Unauthenticated

log = logging.getLogger(__name__)


@contextmanager
def _timed(label: str) -> Iterator[None]:
    started = time.perf_counter()
    yield
    log.debug("%s took %.2fms", label, (time.perf_counter() - started) * 1000)


class Client(EventEmitter):
    """Chat client state cache kept in sync with the event socket."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        api: RequestAdapter | None = None,
        events: EventChannel | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings or Settings()
        self.api = api or HTTPClient(self.settings.api_url)
        self.events = events or WebSocketEventChannel(
            ping_interval=self.settings.ping_interval
        )

        self.session: Session | None = None
        self.user: User | None = None
        self.configuration: dict[str, Any] | None = None
        self.state = ConnectionState.DISCONNECTED
        self._ready = False
        self._ready_event: asyncio.Event | None = None

        self.users = UserCollection(self)
        self.servers = ServerCollection(self)
        self.server_members = ServerMemberCollection(self)
        self.channels = ChannelCollection(self)
        self.emojis = EmojiCollection(self)
        self.messages = MessageCollection(self)
        self._collections: dict[EntityKind, ClassCollection[Any]] = {
            EntityKind.USER: self.users,
            EntityKind.SERVER: self.servers,
            EntityKind.MEMBER: self.server_members,
            EntityKind.CHANNEL: self.channels,
            EntityKind.EMOJI: self.emojis,
            EntityKind.MESSAGE: self.messages,
        }

        self.events.on("event", self._handle_event)
        self.events.on("state", self._handle_state)
        self.events.on("error", self._handle_error)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def partials(self) -> bool:
        return self.settings.partials

    @property
    def ready(self) -> bool:
        return self._ready

    def collection(self, kind: EntityKind | str) -> ClassCollection[Any] | None:
        try:
            return self._collections[EntityKind(kind)]
        except ValueError:
            return None

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        log.debug("State %s -> %s", self.state.value, state.value)
        self.state = state
        self.emit("state", state)

    def _set_ready(self, ready: bool) -> None:
        if ready is self._ready:
            return
        self._ready = ready
        if ready:
            if self._ready_event is not None:
                self._ready_event.set()
            log.info(
                "Ready with %d users, %d servers, %d channels",
                len(self.users),
                len(self.servers),
                len(self.channels),
            )
            self.emit("ready")
        elif self._ready_event is not None:
            self._ready_event.clear()

    async def wait_until_ready(self) -> None:
        """Wait until the bootstrap snapshot has been loaded."""
        if self._ready_event is None:
            self._ready_event = asyncio.Event()
            if self._ready:
                self._ready_event.set()
        await self._ready_event.wait()

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    def _token(self) -> str:
        if self.session is None:
            raise Unauthenticated("no session; log in before connecting")
        if isinstance(self.session, str):
            return self.session
        return self.session["token"]

    async def connect(self) -> None:
        """Open the event channel; the cache becomes ready on the Ready event."""
        token = self._token()
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self.events.connect(self.settings.ws_url, token)
        except TransportError:
            self._set_state(ConnectionState.DISCONNECTED)
            raise

    async def close(self) -> None:
        await self.events.disconnect()
        if isinstance(self.api, HTTPClient):
            await self.api.close()

    def _handle_state(self, state: ConnectionState) -> None:
        if state is ConnectionState.DISCONNECTED:
            self._set_ready(False)
            self._set_state(ConnectionState.DISCONNECTED)

    def _handle_error(self, error: TransportError) -> None:
        log.error("Event channel error: %s", error)
        self._set_ready(False)
        self._set_state(ConnectionState.DISCONNECTED)
        self.emit("error", error)

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    def _handle_event(self, event: Any) -> None:
        log.debug("[EVENT] %s", type(event).__name__)
        try:
            if isinstance(event, ReadyEvent):
                self._bootstrap(event)
            elif isinstance(event, CreateEvent):
                self._apply_create(event)
            elif isinstance(event, UpdateEvent):
                self._apply_update(event)
            elif isinstance(event, DeleteEvent):
                self._apply_delete(event)
            elif isinstance(event, AuthenticatedEvent):
                log.info("Session authenticated")
        except MalformedPayload as exc:
            log.warning("Dropping %s: %s", type(event).__name__, exc)

    def _load(self, collection: ClassCollection[Any], items: list[Mapping[str, Any]]) -> list[Any]:
        loaded = []
        for data in items:
            try:
                key = collection.key_of(data)
                if collection.has(key):
                    # Snapshot after a reconnect: refresh what is cached
                    collection.update(key, data)
                loaded.append(collection.get_or_create(key, data))
            except MalformedPayload as exc:
                log.warning("Skipping snapshot item: %s", exc)
        return loaded

    def _bootstrap(self, event: ReadyEvent) -> None:
        # Users first: nothing they hold refers forward to other kinds
        with _timed("load users"):
            for user in self._load(self.users, event.users):
                if user.relationship == "User":
                    self.user = user
        with _timed("load servers"):
            self._load(self.servers, event.servers)
        with _timed("load memberships"):
            self._load(self.server_members, event.members)
        with _timed("load channels"):
            self._load(self.channels, event.channels)
        with _timed("load emojis"):
            self._load(self.emojis, event.emojis)

        if self.user is not None:
            log.info("Logged in as %s (%s)", self.user.username, self.user.id)
        self._set_state(ConnectionState.READY)
        self._set_ready(True)

    def _apply_create(self, event: CreateEvent) -> None:
        collection = self.collection(event.kind)
        if collection is None:
            return
        key = collection.key_of(event.data)
        existing = collection.get(key)
        if existing is not None and not existing.partial:
            # Already cached (e.g. fetched meanwhile): the newer payload wins
            result = collection.update(key, event.data)
            self.emit(f"{collection.kind.value}_update", *result)
            return
        collection.get_or_create(key, event.data, is_new=True)

    def _apply_update(self, event: UpdateEvent) -> None:
        collection = self.collection(event.kind)
        if collection is None:
            return
        result = collection.update(event.id, event.data, event.clear)
        if result is None:
            log.debug("Update for unknown %s %s, creating", event.kind, event.id)
            collection.get_or_create(event.id, event.data, is_new=True)
            return
        self.emit(f"{collection.kind.value}_update", *result)

    def _apply_delete(self, event: DeleteEvent) -> None:
        collection = self.collection(event.kind)
        if collection is None:
            return
        removed = collection.delete(event.id)
        if removed is None:
            log.debug("Delete for unknown %s %s", event.kind, event.id)
            return
        self.emit(f"{collection.kind.value}_delete", removed)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    async def fetch_configuration(self) -> dict[str, Any]:
        """Fetch the service configuration if it has not been fetched yet."""
        if self.configuration is None:
            self.configuration = await self.api.get("/", auth=False)
        return self.configuration

    def _use_session(self, session: Session) -> None:
        self.session = session
        if isinstance(self.api, HTTPClient):
            self.api.authenticate(session)

    async def login(self, details: Mapping[str, Any]) -> None:
        """Log in with credentials, creating a new session, and connect."""
        await self.fetch_configuration()
        data = await self.api.post("/auth/session/login", dict(details), auth=False)
        if data.get("result") != "Success":
            raise Unauthenticated("multi-factor login is not supported")
        self._use_session({"token": data["token"], "user_id": data["user_id"]})
        await self.connect()

    async def use_existing_session(self, session: Session) -> None:
        """Reuse an existing session and connect."""
        await self.fetch_configuration()
        self._use_session(session)
        await self.connect()

    async def login_bot(self, token: str) -> None:
        """Log in as a bot and connect."""
        await self.fetch_configuration()
        self._use_session(token)
        await self.connect()


__all__ = ["Client"]
