# src/taskboard/tasks/task_service.py

"""
Local Remote Task Store.

Same contract as the REST API (TaskApiClient) but backed by TaskStore in-process:
- fetch/create/update/delete with NotFound / ValidationFailure semantics,
- after each successful mutation, broadcast {create|update|destroy} to every
  connected client (the originator receives its own event too).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from ..core.errors import NotFound
from ..live.events import LiveEvent
from ..live.local_channel import LocalBroadcaster
from .task_models import Task, TaskStatus
from .task_store import TaskStore

logger = logging.getLogger(__name__)


class LocalTaskService:
    def __init__(self, store: TaskStore, broadcaster: LocalBroadcaster | None = None) -> None:
        self.store = store
        self.broadcaster = broadcaster or LocalBroadcaster()

    async def fetch_all(self) -> list[Task]:
        return await asyncio.to_thread(self.store.list_tasks)

    async def fetch_one(self, task_id: int) -> Task:
        task = await asyncio.to_thread(self.store.get_task, task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    async def create(
        self,
        *,
        title: str,
        description: str,
        status: TaskStatus | str | None = None,
    ) -> Task:
        task = await asyncio.to_thread(
            lambda: self.store.add_task(title=title, description=description, status=status)
        )
        logger.info("Task created id=%s status=%s", task.id, task.status.value)
        self.broadcaster.broadcast(LiveEvent.create(task))
        return task

    async def update(self, task_id: int, fields: Mapping[str, Any]) -> Task:
        task = await asyncio.to_thread(self.store.update_task, task_id, dict(fields))
        logger.info("Task updated id=%s status=%s", task.id, task.status.value)
        self.broadcaster.broadcast(LiveEvent.update(task))
        return task

    async def delete(self, task_id: int) -> None:
        await asyncio.to_thread(self.store.delete_task, task_id)
        logger.info("Task deleted id=%s", task_id)
        self.broadcaster.broadcast(LiveEvent.destroy(task_id))
