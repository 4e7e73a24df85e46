"""Cached domain entities.

The models are implemented using :mod:`pydantic`.  Every field except the
identifier has a default so an entity can be built from a partial payload,
and instances are mutated in place by hydration rather than replaced, which
keeps any reference held by a caller up to date.

Entities never embed each other.  A channel stores the *id* of its server,
a server stores the *id* of its owner, and so on.  The ``resolve_*``
helpers look those ids up through the collections of the client that owns
the entity and return ``None`` when the referenced object is not cached.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

if TYPE_CHECKING:
    from ..client import Client


class MemberKey(NamedTuple):
    """Composite identity of a server member."""

    server: str
    user: str

    def __str__(self) -> str:
        return f"{self.server}:{self.user}"

    @classmethod
    def parse(cls, key: str) -> MemberKey:
        server, _, user = key.partition(":")
        return cls(server, user)


class Entity(BaseModel):
    """Base class of every cached object.

    Attributes
    ----------
    id:
        Identifier assigned by the remote service, unique within the kind.
    partial:
        ``True`` for placeholders that only know their identifier.

    """

    model_config = ConfigDict(extra="ignore")

    id: str
    partial: bool = False

    _client: Any = PrivateAttr(default=None)

    def bind(self, client: Client) -> None:
        self._client = client

    @property
    def client(self) -> Client | None:
        return self._client

    def apply(self, fields: dict[str, Any]) -> None:
        """Assign ``fields`` onto this instance in place."""
        for name, value in fields.items():
            setattr(self, name, value)


class User(Entity):
    username: str = ""
    discriminator: str = ""
    display_name: str | None = None
    avatar: dict[str, Any] | None = None
    relations: list[dict[str, Any]] = Field(default_factory=list)
    badges: int = 0
    status: dict[str, Any] | None = None
    flags: int = 0
    privileged: bool = False
    bot: dict[str, Any] | None = None
    # "User" marks the authenticated account itself
    relationship: str = "None"
    online: bool = False


class Server(Entity):
    owner: str | None = None
    name: str = ""
    description: str | None = None
    channels: list[str] = Field(default_factory=list)
    categories: list[dict[str, Any]] | None = None
    system_messages: dict[str, Any] | None = None
    roles: dict[str, Any] = Field(default_factory=dict)
    default_permissions: int = 0
    icon: dict[str, Any] | None = None
    banner: dict[str, Any] | None = None
    flags: int = 0
    nsfw: bool = False
    analytics: bool = False
    discoverable: bool = False

    def resolve_owner(self) -> User | None:
        if self._client is None or self.owner is None:
            return None
        return self._client.users.get_or_partial(self.owner)

    def resolve_channels(self) -> list[Channel]:
        """Return the cached channels of this server, skipping unknown ids."""
        if self._client is None:
            return []
        resolved = []
        for channel_id in self.channels:
            channel = self._client.channels.get_or_partial(channel_id)
            if channel is not None:
                resolved.append(channel)
        return resolved

    def resolve_member(self, user_id: str) -> Member | None:
        if self._client is None:
            return None
        return self._client.server_members.get(MemberKey(self.id, user_id))


class Channel(Entity):
    channel_type: str = "TextChannel"
    name: str | None = None
    description: str | None = None
    server: str | None = None
    owner: str | None = None
    # DirectMessage / SavedMessages
    user: str | None = None
    recipients: list[str] = Field(default_factory=list)
    icon: dict[str, Any] | None = None
    last_message_id: str | None = None
    default_permissions: dict[str, Any] | None = None
    role_permissions: dict[str, Any] = Field(default_factory=dict)
    nsfw: bool = False
    active: bool = False

    def resolve_server(self) -> Server | None:
        if self._client is None or self.server is None:
            return None
        return self._client.servers.get_or_partial(self.server)

    def resolve_owner(self) -> User | None:
        if self._client is None or self.owner is None:
            return None
        return self._client.users.get_or_partial(self.owner)

    def resolve_recipients(self) -> list[User]:
        if self._client is None:
            return []
        users = (self._client.users.get_or_partial(uid) for uid in self.recipients)
        return [user for user in users if user is not None]


class Member(Entity):
    server: str = ""
    user: str = ""
    joined_at: datetime | None = None
    nickname: str | None = None
    avatar: dict[str, Any] | None = None
    roles: list[str] = Field(default_factory=list)
    timeout: datetime | None = None

    @property
    def key(self) -> MemberKey:
        return MemberKey(self.server, self.user)

    def resolve_server(self) -> Server | None:
        if self._client is None:
            return None
        return self._client.servers.get_or_partial(self.server)

    def resolve_user(self) -> User | None:
        if self._client is None:
            return None
        return self._client.users.get_or_partial(self.user)


class Emoji(Entity):
    parent: dict[str, Any] = Field(default_factory=dict)
    creator_id: str | None = None
    name: str = ""
    animated: bool = False
    nsfw: bool = False

    @property
    def server(self) -> str | None:
        if self.parent.get("type") == "Server":
            return self.parent.get("id")
        return None

    def resolve_server(self) -> Server | None:
        server_id = self.server
        if self._client is None or server_id is None:
            return None
        return self._client.servers.get_or_partial(server_id)

    def resolve_creator(self) -> User | None:
        if self._client is None or self.creator_id is None:
            return None
        return self._client.users.get_or_partial(self.creator_id)


class Message(Entity):
    nonce: str | None = None
    channel: str = ""
    author: str = ""
    content: str | None = None
    system: dict[str, Any] | None = None
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    edited: datetime | None = None
    embeds: list[dict[str, Any]] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    replies: list[str] = Field(default_factory=list)
    reactions: dict[str, list[str]] = Field(default_factory=dict)
    masquerade: dict[str, Any] | None = None

    def resolve_channel(self) -> Channel | None:
        if self._client is None or not self.channel:
            return None
        return self._client.channels.get_or_partial(self.channel)

    def resolve_author(self) -> User | None:
        if self._client is None or not self.author:
            return None
        return self._client.users.get_or_partial(self.author)
