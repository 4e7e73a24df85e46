"""Typed inbound events delivered by an event channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    USER = "user"
    SERVER = "server"
    CHANNEL = "channel"
    MEMBER = "member"
    EMOJI = "emoji"
    MESSAGE = "message"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"  # event channel only
    READY = "ready"


@dataclass(frozen=True, slots=True)
class ReadyEvent:
    """Initial full-state snapshot, delivered once per connection."""

    users: list[dict[str, Any]] = field(default_factory=list)
    servers: list[dict[str, Any]] = field(default_factory=list)
    members: list[dict[str, Any]] = field(default_factory=list)
    channels: list[dict[str, Any]] = field(default_factory=list)
    emojis: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class CreateEvent:
    kind: EntityKind
    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class UpdateEvent:
    kind: EntityKind
    id: Any
    data: dict[str, Any]
    clear: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DeleteEvent:
    kind: EntityKind
    id: Any


@dataclass(frozen=True, slots=True)
class AuthenticatedEvent:
    """The server accepted the Authenticate frame."""


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """The server reported a session level error (e.g. ``InvalidSession``)."""

    error: str


Event = (
    ReadyEvent
    | CreateEvent
    | UpdateEvent
    | DeleteEvent
    | AuthenticatedEvent
    | ErrorEvent
)
