# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The sync layer and the board depend on Protocols instead of concrete implementations.
This keeps the task store (HTTP API or local SQLite) and the live-update transport
(ActionCable or in-process) swappable and makes testing easier.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Mapping, Protocol

if TYPE_CHECKING:
    from ..live.events import LiveEvent
    from ..tasks.task_models import Task, TaskStatus

Disposer = Callable[[], None]


class TaskRepo(Protocol):
    """
    Remote Task Store: sole authority for task identity and timestamps.

    Failures are raised as taskboard.core.errors types:
    NetworkFailure, NotFound, ValidationFailure.
    """

    async def fetch_all(self) -> list[Task]: ...
    async def fetch_one(self, task_id: int) -> Task: ...

    async def create(
            self,
            *,
            title: str,
            description: str,
            status: TaskStatus | str | None = None,
    ) -> Task: ...

    async def update(self, task_id: int, fields: Mapping[str, Any]) -> Task: ...
    async def delete(self, task_id: int) -> None: ...


class LiveChannel(Protocol):
    """
    A single logical subscription delivering LiveEvents in arrival order
    to every registered observer (including the client that caused them).
    """

    @property
    def connected(self) -> bool: ...

    def subscribe(self, callback: Callable[[LiveEvent], None]) -> Disposer: ...
    async def connect(self) -> None: ...
    async def close(self) -> None: ...
