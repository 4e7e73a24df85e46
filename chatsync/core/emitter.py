"""Minimal synchronous event emitter shared by the client and event channels."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

log = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Dispatch named events to registered listeners, in registration order.

    Listeners are called synchronously so that an emitter never runs a
    handler for one event while the handler for the previous event is still
    executing.  A listener that returns an awaitable has it scheduled on the
    running loop instead; the emitter keeps the task alive until it finishes
    and logs whatever it raises.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Future[Any]] = set()

    def on(self, name: str, listener: Listener) -> Listener:
        self._listeners.setdefault(name, []).append(listener)
        return listener

    def off(self, name: str, listener: Listener) -> None:
        listeners = self._listeners.get(name)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def once(self, name: str, listener: Listener) -> Listener:
        def wrapper(*args: Any) -> Any:
            self.off(name, wrapper)
            return listener(*args)

        return self.on(name, wrapper)

    def listeners(self, name: str) -> list[Listener]:
        return list(self._listeners.get(name, ()))

    def emit(self, name: str, *args: Any) -> None:
        for listener in self.listeners(name):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    self._schedule(name, result)
            except Exception:
                log.exception("Listener for %r raised", name)

    def _schedule(self, name: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no running loop to drive it
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise
        task = asyncio.ensure_future(awaitable, loop=loop)

        def done(finished: asyncio.Future[Any]) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                log.error(
                    "Listener for %r raised", name, exc_info=(type(exc), exc, exc.__traceback__)
                )

        self._tasks.add(task)
        task.add_done_callback(done)
