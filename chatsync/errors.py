"""Exception types raised by the cache and its collaborators.

``MalformedPayload`` is recovered locally by the client (the offending event
is dropped); the others propagate to the caller.
"""

from __future__ import annotations

from typing import Any


class ChatSyncError(Exception):
    """Base class for all chatsync errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(ChatSyncError):
    """The remote service has no object with the requested identifier."""

    def __init__(self, kind: str, id: Any) -> None:
        super().__init__(f"{kind} {id!s} not found")
        self.kind = kind
        self.id = id


class Unauthenticated(ChatSyncError):
    """A request needed a session that has not been established."""


class MalformedPayload(ChatSyncError):
    """An event or snapshot item is missing fields required for its kind."""

    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(f"malformed {kind} payload: {reason}")
        self.kind = kind
        self.reason = reason


class TransportError(ChatSyncError):
    """The event channel could not connect or was lost."""


__all__ = [
    "ChatSyncError",
    "NotFound",
    "Unauthenticated",
    "MalformedPayload",
    "TransportError",
]
