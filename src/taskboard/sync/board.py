# src/taskboard/sync/board.py

"""
Board reconciliation engine.

Keeps three ordered per-status columns derived from the sync layer's collection and
handles drag gestures:

    IDLE --drag_start--> DRAGGING --drag_end(no target / same slot)--> IDLE (noop)
                                  --drag_end(new slot)--> COMMITTING
    COMMITTING --update ok--> IDLE (confirmed, optimistic view kept)
               --update failed--> IDLE (reverted, columns rebuilt from the collection)

While a gesture is DRAGGING or COMMITTING, collection changes do not touch the columns;
once IDLE again, the next change rebuilds them unconditionally.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from enum import StrEnum
from types import MappingProxyType

from ..core.errors import TaskBoardError
from ..live.observers import ObserverList
from ..tasks.task_models import Task, TaskStatus
from .task_sync import TaskSync

logger = logging.getLogger(__name__)

Columns = Mapping[TaskStatus, tuple[Task, ...]]

COLUMN_ORDER: tuple[TaskStatus, ...] = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE)

COLUMN_TITLES: dict[TaskStatus, str] = {
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.DONE: "Done",
}


def build_columns(tasks: Iterable[Task]) -> dict[TaskStatus, list[Task]]:
    """Partition tasks by status, keeping collection order inside each column."""
    columns: dict[TaskStatus, list[Task]] = {status: [] for status in COLUMN_ORDER}
    for task in tasks:
        columns[task.status].append(task)
    return columns


class DragPhase(StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


class DropOutcome(StrEnum):
    NOOP = "noop"            # no target, or dropped where it started: no remote call
    ABORTED = "aborted"      # source slot didn't hold the task any more: no remote call
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass(frozen=True, slots=True)
class Slot:
    """A position on the board: column key + index within that column."""

    status: TaskStatus
    index: int


class BoardReconciler:
    def __init__(self, sync: TaskSync) -> None:
        self.sync = sync
        self._columns = build_columns(sync.tasks)
        self._phase = DragPhase.IDLE
        self._active_task_id: int | None = None
        self._gesture = 0
        self._deferred_rebuild = False
        self._view: ObserverList[Columns] = ObserverList("board")
        self._detach: Callable[[], None] | None = sync.subscribe(self._on_collection_change)

    # ---- exposed to the rendering layer ----

    @property
    def columns(self) -> Columns:
        return MappingProxyType({status: tuple(items) for status, items in self._columns.items()})

    def column(self, status: TaskStatus | str) -> tuple[Task, ...]:
        return tuple(self._columns[TaskStatus.parse(status)])

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def active_task_id(self) -> int | None:
        return self._active_task_id

    def locate(self, task_id: int) -> Slot | None:
        for status in COLUMN_ORDER:
            for i, task in enumerate(self._columns[status]):
                if task.id == task_id:
                    return Slot(status, i)
        return None

    def subscribe(self, callback: Callable[[Columns], None]) -> Callable[[], None]:
        return self._view.register(callback)

    def close(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    # ---- derivation ----

    def _render(self) -> None:
        self._view.emit(self.columns)

    def rebuild(self) -> None:
        """Re-derive all columns from the sync layer's current collection."""
        self._columns = build_columns(self.sync.tasks)
        self._render()

    def _on_collection_change(self, _tasks: tuple[Task, ...]) -> None:
        if self._phase is not DragPhase.IDLE:
            logger.debug("Collection changed during %s; keeping optimistic view", self._phase.value)
            return
        self.rebuild()

    def _finish(self, gesture: int) -> None:
        """Return to IDLE unless a newer gesture has started meanwhile."""
        if gesture != self._gesture:
            return
        self._phase = DragPhase.IDLE
        self._active_task_id = None
        if self._deferred_rebuild:
            self._deferred_rebuild = False
            self.rebuild()

    # ---- gestures ----

    def drag_start(self, task_id: int) -> None:
        self._gesture += 1
        self._phase = DragPhase.DRAGGING
        self._active_task_id = int(task_id)
        logger.debug("Drag start task=%s gesture=%s", task_id, self._gesture)

    async def drag_end(self, task_id: int, source: Slot, destination: Slot | None) -> DropOutcome:
        gesture = self._gesture
        task_id = int(task_id)

        if destination is None:
            self._finish(gesture)
            self.rebuild()
            return DropOutcome.NOOP

        # Indexes past the end mean "last"; once the task is lifted, a same-column drop
        # has one slot fewer to land in.
        last = len(self._columns[destination.status]) - (1 if destination.status == source.status else 0)
        destination = Slot(destination.status, max(0, min(destination.index, last)))

        if destination.status == source.status and destination.index == source.index:
            self._finish(gesture)
            self.rebuild()
            return DropOutcome.NOOP

        if not self._splice(task_id, source, destination):
            logger.info(
                "Drop of task %s aborted: not found at %s[%s]",
                task_id,
                source.status.value,
                source.index,
            )
            self._finish(gesture)
            self.rebuild()
            return DropOutcome.ABORTED

        self._phase = DragPhase.COMMITTING
        self._render()

        try:
            await self.sync.update_task(task_id, {"status": destination.status.value})
        except TaskBoardError as e:
            logger.warning("Failed to update task status (task=%s): %s", task_id, e)
            if gesture == self._gesture:
                self._finish(gesture)
                self.rebuild()
            elif self._phase is DragPhase.IDLE:
                # The newer gesture already settled; nothing else will rebuild for us.
                self.rebuild()
            else:
                # A newer gesture owns the view; rebuild when it settles.
                self._deferred_rebuild = True
            return DropOutcome.REVERTED

        self._finish(gesture)
        return DropOutcome.CONFIRMED

    def _splice(self, task_id: int, source: Slot, destination: Slot) -> bool:
        """Move the task between columns in a copy; commit only if the source slot holds it."""
        next_columns = {status: list(items) for status, items in self._columns.items()}
        source_list = next_columns[source.status]

        if not 0 <= source.index < len(source_list):
            return False
        moved = source_list[source.index]
        if moved.id != task_id:
            return False
        del source_list[source.index]

        if destination.status != source.status:
            moved = replace(moved, status=destination.status)

        next_columns[destination.status].insert(destination.index, moved)

        self._columns = next_columns
        return True

    async def move(self, task_id: int, status: TaskStatus | str, index: int | None = None) -> DropOutcome:
        """
        Whole gesture in one call: pick the task up where the board shows it and drop it
        at `index` in `status` (end of the column when omitted).
        """
        target = TaskStatus.parse(status)
        source = self.locate(task_id)
        self.drag_start(task_id)
        if source is None:
            return await self.drag_end(task_id, Slot(target, -1), None)

        if index is None:
            index = len(self._columns[target])
            if target == source.status:
                index -= 1
        return await self.drag_end(task_id, source, Slot(target, index))
