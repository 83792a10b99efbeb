# src/taskboard/live/observers.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObserverList(Generic[T]):
    """
    Ordered fan-out list.

    register() returns a disposer; calling it (any number of times) removes exactly
    that registration. Registering the same callable twice gives two independent
    registrations, each delivered once per emit().
    """

    def __init__(self, name: str = "observers") -> None:
        self._name = name
        self._entries: list[tuple[int, Callable[[T], None]]] = []
        self._next_token = 0

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, callback: Callable[[T], None]) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._entries.append((token, callback))

        def dispose() -> None:
            self._entries = [e for e in self._entries if e[0] != token]

        return dispose

    def emit(self, value: T) -> None:
        # Snapshot: observers added/removed during delivery take effect on the next emit.
        for _token, callback in list(self._entries):
            try:
                callback(value)
            except Exception:
                logger.exception("%s: observer %r failed", self._name, callback)

    def clear(self) -> None:
        self._entries = []
