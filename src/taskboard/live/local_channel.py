# src/taskboard/live/local_channel.py

"""
In-process live updates for the local SQLite backend.

LocalBroadcaster plays the server side (one topic, every mutation is broadcast);
LocalChannel is one client's connection to it. Each connection keeps its own
observer list, so closing one client does not affect the others.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .events import LiveEvent
from .observers import ObserverList

logger = logging.getLogger(__name__)


class LocalBroadcaster:
    def __init__(self) -> None:
        self._connections: ObserverList[LiveEvent] = ObserverList("local-broadcaster")

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def attach(self, deliver: Callable[[LiveEvent], None]) -> Callable[[], None]:
        return self._connections.register(deliver)

    def broadcast(self, event: LiveEvent) -> None:
        """Deliver synchronously, in call order, to every connected client (originator included)."""
        logger.debug(
            "Broadcast %s id=%s to %d connection(s)",
            event.kind.value,
            event.id,
            len(self._connections),
        )
        self._connections.emit(event)

    def connect(self) -> LocalChannel:
        return LocalChannel(self)


class LocalChannel:
    """One client's subscription to a LocalBroadcaster. Events broadcast while closed are missed."""

    def __init__(self, broadcaster: LocalBroadcaster) -> None:
        self._broadcaster = broadcaster
        self._observers: ObserverList[LiveEvent] = ObserverList("local-channel")
        self._detach: Callable[[], None] | None = None

    @property
    def connected(self) -> bool:
        return self._detach is not None

    def subscribe(self, callback: Callable[[LiveEvent], None]) -> Callable[[], None]:
        return self._observers.register(callback)

    async def connect(self) -> None:
        if self._detach is None:
            self._detach = self._broadcaster.attach(self._observers.emit)
            logger.info("Local channel connected (observers=%d)", len(self._observers))

    async def close(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
            logger.info("Local channel closed")
