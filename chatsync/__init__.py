"""Client-side state cache for a chat service.

The package keeps an in-memory, identity-mapped graph of users, servers,
channels, members, emojis and messages in sync with the service through an
initial Ready snapshot followed by incremental events.  Most consumers only
need :class:`Client` and the entity models re-exported here.
"""

from .client import Client
from .config import Settings, load_settings
from .core.models import Channel, Emoji, Member, MemberKey, Message, Server, User
from .errors import (
    ChatSyncError,
    MalformedPayload,
    NotFound,
    TransportError,
    Unauthenticated,
)

__all__ = [
    "Client",
    "Settings",
    "load_settings",
    "Channel",
    "Emoji",
    "Member",
    "MemberKey",
    "Message",
    "Server",
    "User",
    "ChatSyncError",
    "MalformedPayload",
    "NotFound",
    "TransportError",
    "Unauthenticated",
]
