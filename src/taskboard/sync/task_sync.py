# src/taskboard/sync/task_sync.py

"""
Task synchronization layer.

Keeps the client's task collection consistent with the task store by merging:
- the authoritative list from fetch_all() (replaces the whole collection), and
- the stream of push events from the live channel, applied one by one in arrival order.

Key invariants:
- every apply is idempotent (create on a known id overwrites, update/destroy on an
  unknown id is a no-op), so the originator receiving its own broadcast after the
  direct response is harmless,
- validation failures never touch the collection or the error message,
- nothing here retries; a failed call is reported once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, assert_never, cast

from ..core.errors import NetworkFailure, NotFound, TaskBoardError
from ..core.ports import LiveChannel, TaskRepo
from ..live.events import EventKind, LiveEvent
from ..live.observers import ObserverList
from ..tasks.task_models import Task, TaskStatus

logger = logging.getLogger(__name__)

TaskListObserver = Callable[[tuple[Task, ...]], None]


class TaskSync:
    def __init__(self, repo: TaskRepo, channel: LiveChannel | None = None) -> None:
        self.repo = repo
        self.channel = channel
        self._tasks: list[Task] = []
        self._loads_in_flight = 0
        self._load_seq = 0
        self._error: str | None = None
        self._changes: ObserverList[tuple[Task, ...]] = ObserverList("task-sync")
        self._unsubscribe: Callable[[], None] | None = None

    # ---- state exposed to the rendering layer ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def loading(self) -> bool:
        return self._loads_in_flight > 0

    @property
    def error(self) -> str | None:
        return self._error

    def get(self, task_id: int) -> Task | None:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def subscribe(self, callback: TaskListObserver) -> Callable[[], None]:
        """Observe collection changes. Returns a disposer."""
        return self._changes.register(callback)

    def _notify(self) -> None:
        self._changes.emit(tuple(self._tasks))

    # ---- lifecycle (tied to the view's mount/unmount) ----

    async def start(self) -> None:
        if self.channel is not None and self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self.on_event)
            await self.channel.connect()
        await self.load_all()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.channel is not None:
            await self.channel.close()

    # ---- authoritative load ----

    async def load_all(self) -> bool:
        """
        Replace the collection with the store's list.

        On failure the previous collection stays visible and `error` is set.
        When loads overlap, only the most recently started one may touch the
        collection or the error; `loading` stays true until all have finished.
        Returns True if the fetch succeeded.
        """
        self._load_seq += 1
        seq = self._load_seq
        self._loads_in_flight += 1
        self._error = None
        self._notify()
        try:
            tasks = await self.repo.fetch_all()
        except TaskBoardError as e:
            message = str(e) or "Failed to fetch tasks"
            logger.warning("load_all failed: %s", message)
            if seq == self._load_seq:
                self._error = message
            return False
        else:
            if seq != self._load_seq:
                logger.debug("Dropping superseded task list (load %d, latest %d)", seq, self._load_seq)
            else:
                self._tasks = list(tasks)
                logger.info("Loaded %d task(s)", len(self._tasks))
            return True
        finally:
            self._loads_in_flight -= 1
            self._notify()

    # ---- push events ----

    def on_event(self, event: LiveEvent) -> None:
        """Apply one live-update event. Safe to call any number of times with the same event."""
        if self._apply(event):
            self._notify()

    def _apply(self, event: LiveEvent) -> bool:
        match event.kind:
            case EventKind.CREATE:
                return self._upsert(cast(Task, event.task))
            case EventKind.UPDATE:
                return self._replace(cast(Task, event.task))
            case EventKind.DESTROY:
                return self._remove(event.id)
            case _:
                assert_never(event.kind)

    def _index_of(self, task_id: int) -> int | None:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        return None

    def _upsert(self, task: Task) -> bool:
        i = self._index_of(task.id)
        if i is None:
            # New tasks go first, matching the store's newest-first order.
            self._tasks.insert(0, task)
            logger.debug("Task %s inserted", task.id)
            return True
        if self._tasks[i] == task:
            return False
        self._tasks[i] = task
        return True

    def _replace(self, task: Task) -> bool:
        i = self._index_of(task.id)
        if i is None:
            logger.debug("Update for unknown task %s ignored", task.id)
            return False
        if self._tasks[i] == task:
            return False
        self._tasks[i] = task
        return True

    def _remove(self, task_id: int) -> bool:
        i = self._index_of(task_id)
        if i is None:
            return False
        del self._tasks[i]
        return True

    # ---- mutations (forwarded to the store, direct responses applied like events) ----

    def _record_failure(self, err: TaskBoardError) -> None:
        if isinstance(err, (NetworkFailure, NotFound)):
            self._error = str(err)
            self._notify()

    async def create_task(
        self,
        *,
        title: str,
        description: str,
        status: TaskStatus | str | None = None,
    ) -> Task:
        try:
            task = await self.repo.create(title=title, description=description, status=status)
        except TaskBoardError as e:
            self._record_failure(e)
            raise
        self.on_event(LiveEvent.create(task))
        return task

    async def update_task(self, task_id: int, fields: Mapping[str, Any]) -> Task:
        try:
            task = await self.repo.update(task_id, fields)
        except TaskBoardError as e:
            self._record_failure(e)
            raise
        self.on_event(LiveEvent.update(task))
        return task

    async def delete_task(self, task_id: int) -> None:
        try:
            await self.repo.delete(task_id)
        except TaskBoardError as e:
            self._record_failure(e)
            raise
        self.on_event(LiveEvent.destroy(task_id))
