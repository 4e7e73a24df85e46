"""REST adapter implementing :class:`~chatsync.adapters.base.RequestAdapter`.

It uses :mod:`httpx` to talk to the service's HTTP API, which keeps the
implementation fully asynchronous and lets tests swap in a
:class:`httpx.MockTransport`.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..errors import NotFound, Unauthenticated
from .base import RequestAdapter

# A string session is a bot token; a mapping is a user session
Session = str | dict[str, str]


class HTTPClient(RequestAdapter):
    """Adapter that sends requests directly to the service HTTP API."""

    def __init__(
        self, base_url: str, client: httpx.AsyncClient | None = None
    ) -> None:
        """Store the API ``base_url`` and optional HTTP ``client``."""
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient()
        self.headers: dict[str, str] = {}

    @property
    def authenticated(self) -> bool:
        return bool(self.headers)

    def authenticate(self, session: Session | None) -> None:
        """Use ``session`` for every following authenticated request."""
        if session is None:
            self.headers = {}
        elif isinstance(session, str):
            self.headers = {"X-Bot-Token": session}
        else:
            self.headers = {"X-Session-Token": session["token"]}

    # ------------------------------------------------------------------
    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Parameters
        ----------
        method:
            HTTP verb.
        path:
            Route relative to the API base, e.g. ``/users/@me``.
        body:
            Optional JSON payload.
        auth:
            Whether the route needs a session.

        """
        if auth and not self.authenticated:
            raise Unauthenticated(f"{method} {path} requires a session")

        response = await self.client.request(
            method,
            f"{self.base_url}{path}",
            json=body,
            params=params,
            headers=self.headers if auth else None,
        )
        if response.status_code == 401:
            raise Unauthenticated(f"{method} {path} was rejected by the server")
        if response.status_code == 404:
            raise NotFound("route", path)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()
