# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..sync.board import BoardReconciler, Slot
from ..sync.task_sync import TaskSync
from .ports import LiveChannel, TaskRepo


@dataclass
class AppState:
    """
    Everything a running board needs, wired once in cli/bootstrap.py.

    `closers` are async callables run on shutdown (HTTP client, etc.), last registered first.
    """

    settings: Any
    repo: TaskRepo
    channel: LiveChannel
    sync: TaskSync
    board: BoardReconciler
    closers: list[Any] = field(default_factory=list)

    # Where the task picked up by /drag was sitting when the gesture began.
    drag_source: Slot | None = None

    @property
    def backend(self) -> str:
        return str(getattr(self.settings, "backend", "http"))
