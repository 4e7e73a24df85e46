"""JSON wire codec for the event socket (protocol version 1).

Inbound frames are translated into the typed events of
:mod:`chatsync.core.events`; one frame can yield several events (``Bulk``,
``ServerCreate``) or none (``Pong`` and frame types this client does not
know).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..core.events import (
    AuthenticatedEvent,
    CreateEvent,
    DeleteEvent,
    EntityKind,
    ErrorEvent,
    Event,
    ReadyEvent,
    UpdateEvent,
)
from ..errors import MalformedPayload

log = logging.getLogger(__name__)

PROTOCOL_VERSION = 1

Frame = dict[str, Any]


def authenticate(token: str) -> Frame:
    return {"type": "Authenticate", "token": token}


def ping(data: int = 0) -> Frame:
    return {"type": "Ping", "data": data}


def _require(frame: Frame, *keys: str) -> None:
    missing = [key for key in keys if key not in frame]
    if missing:
        raise MalformedPayload(
            str(frame.get("type", "frame")), f"missing {', '.join(missing)}"
        )


def _body(frame: Frame) -> dict[str, Any]:
    return {key: value for key, value in frame.items() if key != "type"}


def _update(kind: EntityKind) -> Callable[[Frame], list[Event]]:
    def decode_update(frame: Frame) -> list[Event]:
        _require(frame, "id", "data")
        return [
            UpdateEvent(kind, frame["id"], frame["data"], tuple(frame.get("clear", ())))
        ]

    return decode_update


def _create(kind: EntityKind) -> Callable[[Frame], list[Event]]:
    def decode_create(frame: Frame) -> list[Event]:
        return [CreateEvent(kind, _body(frame))]

    return decode_create


def _delete(kind: EntityKind) -> Callable[[Frame], list[Event]]:
    def decode_delete(frame: Frame) -> list[Event]:
        _require(frame, "id")
        return [DeleteEvent(kind, frame["id"])]

    return decode_delete


def _ready(frame: Frame) -> list[Event]:
    return [
        ReadyEvent(
            users=list(frame.get("users", [])),
            servers=list(frame.get("servers", [])),
            members=list(frame.get("members", [])),
            channels=list(frame.get("channels", [])),
            emojis=list(frame.get("emojis", [])),
        )
    ]


def _bulk(frame: Frame) -> list[Event]:
    _require(frame, "v")
    if not isinstance(frame["v"], list):
        raise MalformedPayload("Bulk", "v is not a list")
    events: list[Event] = []
    for item in frame["v"]:
        # one bad item only loses itself, not its siblings
        try:
            events.extend(decode(item))
        except MalformedPayload as exc:
            log.warning("Skipping bulk item: %s", exc)
    return events


def _message_update(frame: Frame) -> list[Event]:
    _require(frame, "id", "data")
    data = dict(frame["data"])
    if "channel" in frame:
        data.setdefault("channel", frame["channel"])
    return [UpdateEvent(EntityKind.MESSAGE, frame["id"], data, tuple(frame.get("clear", ())))]


def _server_create(frame: Frame) -> list[Event]:
    _require(frame, "server")
    events: list[Event] = [CreateEvent(EntityKind.SERVER, frame["server"])]
    events.extend(CreateEvent(EntityKind.CHANNEL, c) for c in frame.get("channels", []))
    events.extend(CreateEvent(EntityKind.EMOJI, e) for e in frame.get("emojis", []))
    return events


def _member_join(frame: Frame) -> list[Event]:
    _require(frame, "id", "user")
    data = dict(frame.get("member") or {})
    data["_id"] = {"server": frame["id"], "user": frame["user"]}
    return [CreateEvent(EntityKind.MEMBER, data)]


def _member_leave(frame: Frame) -> list[Event]:
    _require(frame, "id", "user")
    return [DeleteEvent(EntityKind.MEMBER, {"server": frame["id"], "user": frame["user"]})]


def _relationship(frame: Frame) -> list[Event]:
    _require(frame, "id", "user")
    user = frame["user"]
    data = dict(user) if isinstance(user, dict) else {}
    if "status" in frame:
        data["relationship"] = frame["status"]
    user_id = data.pop("_id", None) or (user if isinstance(user, str) else frame["id"])
    return [UpdateEvent(EntityKind.USER, user_id, data)]


def _authenticated(frame: Frame) -> list[Event]:
    return [AuthenticatedEvent()]


def _error(frame: Frame) -> list[Event]:
    return [ErrorEvent(str(frame.get("error", "Unknown")))]


DECODERS: dict[str, Callable[[Frame], list[Event]]] = {
    "Ready": _ready,
    "Authenticated": _authenticated,
    "Error": _error,
    "Bulk": _bulk,
    "Message": _create(EntityKind.MESSAGE),
    "MessageUpdate": _message_update,
    "MessageDelete": _delete(EntityKind.MESSAGE),
    "ChannelCreate": _create(EntityKind.CHANNEL),
    "ChannelUpdate": _update(EntityKind.CHANNEL),
    "ChannelDelete": _delete(EntityKind.CHANNEL),
    "ServerCreate": _server_create,
    "ServerUpdate": _update(EntityKind.SERVER),
    "ServerDelete": _delete(EntityKind.SERVER),
    "ServerMemberJoin": _member_join,
    "ServerMemberUpdate": _update(EntityKind.MEMBER),
    "ServerMemberLeave": _member_leave,
    "UserUpdate": _update(EntityKind.USER),
    "UserRelationship": _relationship,
    "EmojiCreate": _create(EntityKind.EMOJI),
    "EmojiDelete": _delete(EntityKind.EMOJI),
}


def decode(frame: Frame) -> list[Event]:
    """Translate one inbound frame into zero or more typed events."""
    if not isinstance(frame, dict) or "type" not in frame:
        raise MalformedPayload("frame", "missing type")
    decoder = DECODERS.get(frame["type"])
    if decoder is None:
        log.debug("Ignoring %s frame", frame["type"])
        return []
    try:
        return decoder(frame)
    except (TypeError, ValueError, AttributeError) as exc:
        # wrongly shaped values, e.g. ``"data": null``
        raise MalformedPayload(str(frame["type"]), str(exc)) from exc
