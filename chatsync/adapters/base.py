"""Interfaces of the collaborators the cache consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..core.emitter import EventEmitter
from ..core.events import ConnectionState


class RequestAdapter(ABC):
    """Abstract REST collaborator."""

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Any:
        """Perform a request against ``path`` and return the decoded JSON."""

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)


class EventChannel(EventEmitter, ABC):
    """Abstract duplex event channel.

    Implementations emit ``event`` with one typed event at a time, in
    arrival order, ``state`` with a :class:`ConnectionState` on every
    transition and ``error`` with a :class:`~chatsync.errors.TransportError`.
    """

    def __init__(self) -> None:
        super().__init__()
        self._state = ConnectionState.DISCONNECTED

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        self.emit("state", state)

    @abstractmethod
    async def connect(self, url: str, token: str) -> None:
        """Open the channel to ``url`` and authenticate with ``token``."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> None:
        """Send a single outbound frame."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the channel."""
