"""Mapping raw service payloads onto entity fields.

The same tables serve both the create path (build a fresh entity) and the
patch path (update an existing one): :func:`hydrate` only reports fields whose
key is present in the payload, so a partial update never resets anything it
does not mention.  Reference fields are stored as raw identifiers and nothing
here touches another collection.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from ..errors import MalformedPayload
from .events import EntityKind
from .models import Channel, Emoji, Entity, Member, MemberKey, Message, Server, User

Transform = Callable[[Any], Any]


def _keep(value: Any) -> Any:
    # Containers are copied so an entity never aliases the payload
    if isinstance(value, (dict, list)):
        return copy.deepcopy(value)
    return value


def _timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _same(*keys: str) -> dict[str, tuple[str, Transform]]:
    return {key: (key, _keep) for key in keys}


MODELS: dict[EntityKind, type[Entity]] = {
    EntityKind.USER: User,
    EntityKind.SERVER: Server,
    EntityKind.CHANNEL: Channel,
    EntityKind.MEMBER: Member,
    EntityKind.EMOJI: Emoji,
    EntityKind.MESSAGE: Message,
}

# raw payload key -> (entity field, transform)
FIELDS: dict[EntityKind, dict[str, tuple[str, Transform]]] = {
    EntityKind.USER: _same(
        "username",
        "discriminator",
        "display_name",
        "avatar",
        "relations",
        "badges",
        "status",
        "flags",
        "privileged",
        "bot",
        "relationship",
        "online",
    ),
    EntityKind.SERVER: _same(
        "owner",
        "name",
        "description",
        "channels",
        "categories",
        "system_messages",
        "roles",
        "default_permissions",
        "icon",
        "banner",
        "flags",
        "nsfw",
        "analytics",
        "discoverable",
    ),
    EntityKind.CHANNEL: _same(
        "channel_type",
        "name",
        "description",
        "server",
        "owner",
        "user",
        "recipients",
        "icon",
        "last_message_id",
        "default_permissions",
        "role_permissions",
        "nsfw",
        "active",
    ),
    EntityKind.MEMBER: {
        **_same("nickname", "avatar", "roles"),
        "joined_at": ("joined_at", _timestamp),
        "timeout": ("timeout", _timestamp),
    },
    EntityKind.EMOJI: _same("parent", "creator_id", "name", "animated", "nsfw"),
    EntityKind.MESSAGE: {
        **_same(
            "nonce",
            "channel",
            "author",
            "content",
            "system",
            "attachments",
            "embeds",
            "mentions",
            "replies",
            "reactions",
            "masquerade",
        ),
        "edited": ("edited", _timestamp),
    },
}

# service "clear" names -> entity fields reset to their defaults
CLEARABLE: dict[EntityKind, dict[str, str]] = {
    EntityKind.USER: {
        "Avatar": "avatar",
        "DisplayName": "display_name",
    },
    EntityKind.SERVER: {
        "Description": "description",
        "Categories": "categories",
        "SystemMessages": "system_messages",
        "Icon": "icon",
        "Banner": "banner",
    },
    EntityKind.CHANNEL: {
        "Description": "description",
        "Icon": "icon",
        "DefaultPermissions": "default_permissions",
    },
    EntityKind.MEMBER: {
        "Nickname": "nickname",
        "Avatar": "avatar",
        "Roles": "roles",
        "Timeout": "timeout",
    },
    EntityKind.EMOJI: {},
    EntityKind.MESSAGE: {},
}

# clear names that drop a single key of the user's status object
_STATUS_KEYS = {"StatusText": "text", "StatusPresence": "presence"}


def _default(model: type[Entity], name: str) -> Any:
    return model.model_fields[name].get_default(call_default_factory=True)


def hydrate(
    kind: EntityKind,
    payload: Mapping[str, Any],
    existing: Entity | None = None,
) -> dict[str, Any]:
    """Return the field set ``payload`` applies to an entity of ``kind``.

    With ``existing`` only fields that would actually change are returned.
    """
    fields: dict[str, Any] = {}
    for key, (name, transform) in FIELDS[kind].items():
        if key not in payload:
            continue
        value = transform(payload[key])
        if existing is not None and getattr(existing, name) == value:
            continue
        fields[name] = value
    return fields


def clear(kind: EntityKind, names: Iterable[str], existing: Entity) -> dict[str, Any]:
    """Translate service ``clear`` names into field resets for ``existing``."""
    model = MODELS[kind]
    fields: dict[str, Any] = {}
    for name in names:
        if kind is EntityKind.USER and name in _STATUS_KEYS:
            status = dict(fields.get("status", existing.status) or {})
            status.pop(_STATUS_KEYS[name], None)
            fields["status"] = status or None
            continue
        field = CLEARABLE[kind].get(name)
        if field is not None:
            fields[field] = _default(model, field)
    return {
        name: value
        for name, value in fields.items()
        if getattr(existing, name) != value
    }


def member_key(raw: Any) -> MemberKey | None:
    if isinstance(raw, MemberKey):
        return raw
    if isinstance(raw, Mapping):
        if "server" in raw and "user" in raw:
            return MemberKey(str(raw["server"]), str(raw["user"]))
        return None
    if isinstance(raw, (tuple, list)) and len(raw) == 2:
        return MemberKey(str(raw[0]), str(raw[1]))
    if isinstance(raw, str) and ":" in raw:
        return MemberKey.parse(raw)
    return None


def identifier(kind: EntityKind, payload: Mapping[str, Any]) -> str:
    """Extract the collection key of ``payload``."""
    raw = payload.get("_id", payload.get("id"))
    if kind is EntityKind.MEMBER:
        member = member_key(raw)
        if member is None:
            raise MalformedPayload(kind.value, "missing server/user identifier")
        return str(member)
    if raw is None or raw == "":
        raise MalformedPayload(kind.value, "missing identifier")
    return str(raw)
