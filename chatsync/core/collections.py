"""Identity-mapped stores, one per entity kind.

Each collection owns every instance of its kind: at most one object exists per
identifier and later hydration mutates that object in place.  Collections
never resolve references between kinds, see :mod:`chatsync.core.models`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from ..errors import MalformedPayload, NotFound
from . import hydration
from .events import EntityKind
from .models import Channel, Emoji, Entity, Member, MemberKey, Message, Server, User

if TYPE_CHECKING:
    from ..client import Client

log = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)


class ClassCollection(Generic[T]):
    """Identity map from identifier to entity for a single kind."""

    kind: ClassVar[EntityKind]
    model: ClassVar[type[Entity]]

    def __init__(self, client: Client) -> None:
        self.client = client
        self._objects: dict[str, T] = {}
        self._pending: dict[str, asyncio.Task[T]] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def key(self, id: Any) -> str:
        return str(id)

    def key_of(self, data: Mapping[str, Any]) -> str:
        return hydration.identifier(self.kind, data)

    def get(self, id: Any) -> T | None:
        return self._objects.get(self.key(id))

    def has(self, id: Any) -> bool:
        return self.key(id) in self._objects

    def __contains__(self, id: Any) -> bool:
        return self.has(id)

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._objects.values()))

    def keys(self) -> list[str]:
        return list(self._objects)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def _construct(self, key: str) -> T:
        instance = self.model.model_construct(id=key)
        instance.bind(self.client)
        return instance  # type: ignore[return-value]

    def create(self, id: Any, data: Mapping[str, Any], *, partial: bool = False) -> T:
        """Build a new entity from ``data`` and insert it, replacing nothing."""
        key = self.key(id)
        instance = self._construct(key)
        instance.apply(hydration.hydrate(self.kind, data))
        instance.partial = partial
        self._objects[key] = instance
        return instance

    def get_or_create(self, id: Any, data: Mapping[str, Any], is_new: bool = False) -> T:
        """Return the entity for ``id``, creating it from ``data`` if absent.

        Existing entities are returned unchanged, except placeholders which
        are completed in place.  ``<kind>_create`` is emitted only for a new
        entity and only when ``is_new`` is set, so bootstrap loading stays
        silent.
        """
        existing = self.get(id)
        if existing is not None and not existing.partial:
            return existing

        if existing is not None:
            existing.apply(hydration.hydrate(self.kind, data, existing))
            existing.partial = False
            instance = existing
        else:
            instance = self.create(id, data)

        if is_new:
            self.client.emit(f"{self.kind.value}_create", instance)
        return instance

    def get_or_partial(self, id: Any) -> T | None:
        """Return the entity for ``id`` or an id-only placeholder.

        Placeholders are only synthesized when the client has partials
        enabled; this never performs a request.
        """
        existing = self.get(id)
        if existing is not None:
            return existing
        if self.client.partials:
            return self.create(id, {}, partial=True)
        return None

    def update(
        self,
        id: Any,
        data: Mapping[str, Any],
        clear: Iterable[str] = (),
    ) -> tuple[T, dict[str, Any]] | None:
        """Hydrate the cached entity for ``id`` in place.

        Returns the entity and the field set that changed, or ``None`` when
        nothing is cached under ``id``.
        """
        existing = self.get(id)
        if existing is None:
            return None
        changes = hydration.hydrate(self.kind, data, existing)
        if clear:
            changes.update(hydration.clear(self.kind, clear, existing))
        existing.apply(changes)
        return existing, changes

    def delete(self, id: Any) -> T | None:
        """Remove ``id`` from the collection; the removed object stays readable."""
        return self._objects.pop(self.key(id), None)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------
    def _fetch_path(self, key: str) -> str:
        raise NotImplementedError

    async def _fetch(self, key: str) -> T:
        cached = self.get(key)
        if cached is not None and not cached.partial:
            return cached

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._request(key))
            self._pending[key] = task
            task.add_done_callback(lambda _: self._pending.pop(key, None))
        return await task

    async def _request(self, key: str) -> T:
        log.debug("Fetching %s %s", self.kind.value, key)
        try:
            data = await self.client.api.get(self._fetch_path(key))
        except NotFound:
            raise NotFound(self.kind.value, key) from None

        # Anything applied while the request was in flight is older than
        # this response, so it is hydrated onto the same instance.
        existing = self.get(key)
        if existing is not None:
            existing.apply(hydration.hydrate(self.kind, data, existing))
            existing.partial = False
            return existing
        return self.create(key, data)

    async def fetch(self, id: Any) -> T:
        """Return the cached entity or request it from the service."""
        return await self._fetch(self.key(id))


class UserCollection(ClassCollection[User]):
    kind = EntityKind.USER
    model = User

    def _fetch_path(self, key: str) -> str:
        return f"/users/{key}"


class ServerCollection(ClassCollection[Server]):
    """Collection of servers.

    :meth:`fetch` only loads the server itself, not its channels.
    """

    kind = EntityKind.SERVER
    model = Server

    def _fetch_path(self, key: str) -> str:
        return f"/servers/{key}"

    async def create_server(self, data: Mapping[str, Any]) -> Server:
        """Create a server and return the newly cached instance."""
        response = await self.client.api.post("/servers/create", data)
        for channel in response.get("channels", []):
            self.client.channels.get_or_create(
                self.client.channels.key_of(channel), channel
            )
        server = response["server"]
        return self.get_or_create(self.key_of(server), server, True)

    async def leave(self, id: Any, silent: bool = False) -> Server | None:
        """Leave (or delete, when owned) a server and drop it from the cache."""
        key = self.key(id)
        await self.client.api.delete(
            f"/servers/{key}", params={"leave_silently": str(silent).lower()}
        )
        return self.delete(key)


class ChannelCollection(ClassCollection[Channel]):
    kind = EntityKind.CHANNEL
    model = Channel

    def _fetch_path(self, key: str) -> str:
        return f"/channels/{key}"


class ServerMemberCollection(ClassCollection[Member]):
    """Members keyed by their ``server:user`` composite identity."""

    kind = EntityKind.MEMBER
    model = Member

    def key(self, id: Any) -> str:
        member = hydration.member_key(id)
        return str(member) if member is not None else str(id)

    def _construct(self, key: str) -> Member:
        member = MemberKey.parse(key)
        if not member.server or not member.user:
            raise MalformedPayload(self.kind.value, f"invalid member key {key!r}")
        instance = super()._construct(key)
        instance.server, instance.user = member.server, member.user
        return instance

    def _fetch_path(self, key: str) -> str:
        member = MemberKey.parse(key)
        return f"/servers/{member.server}/members/{member.user}"

    async def fetch(self, server: str, user: str) -> Member:  # type: ignore[override]
        return await self._fetch(str(MemberKey(server, user)))

    def of_server(self, server: str) -> list[Member]:
        return [m for m in self._objects.values() if m.server == server]


class EmojiCollection(ClassCollection[Emoji]):
    kind = EntityKind.EMOJI
    model = Emoji

    def _fetch_path(self, key: str) -> str:
        return f"/custom/emoji/{key}"


class MessageCollection(ClassCollection[Message]):
    kind = EntityKind.MESSAGE
    model = Message

    def __init__(self, client: Client) -> None:
        super().__init__(client)
        self._channels: dict[str, str] = {}

    def create(self, id: Any, data: Mapping[str, Any], *, partial: bool = False) -> Message:
        message = super().create(id, data, partial=partial)
        if message.channel:
            self._channels[message.id] = message.channel
        return message

    def _fetch_path(self, key: str) -> str:
        return f"/channels/{self._channels[key]}/messages/{key}"

    async def fetch(self, channel: str, message: str) -> Message:  # type: ignore[override]
        self._channels[message] = channel
        try:
            return await self._fetch(message)
        except Exception:
            if not self.has(message):
                self._channels.pop(message, None)
            raise

    def delete(self, id: Any) -> Message | None:
        self._channels.pop(self.key(id), None)
        return super().delete(id)


__all__ = [
    "ClassCollection",
    "UserCollection",
    "ServerCollection",
    "ChannelCollection",
    "ServerMemberCollection",
    "EmojiCollection",
    "MessageCollection",
]
