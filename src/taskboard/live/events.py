# src/taskboard/live/events.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, cast

from ..tasks.task_models import Task


class EventKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


@dataclass(frozen=True, slots=True)
class LiveEvent:
    """
    One push notification from the live-update channel.

    create/update carry a full task snapshot; destroy carries only the id.
    Use the create()/update()/destroy() constructors rather than building it by hand.
    """

    kind: EventKind
    task: Task | None = None
    task_id: int | None = None

    def __post_init__(self) -> None:
        if self.kind is EventKind.DESTROY:
            if self.task_id is None:
                raise ValueError("destroy event requires an id")
        elif self.task is None:
            raise ValueError(f"{self.kind.value} event requires a task")

    @classmethod
    def create(cls, task: Task) -> LiveEvent:
        return cls(EventKind.CREATE, task=task, task_id=task.id)

    @classmethod
    def update(cls, task: Task) -> LiveEvent:
        return cls(EventKind.UPDATE, task=task, task_id=task.id)

    @classmethod
    def destroy(cls, task_id: int) -> LiveEvent:
        return cls(EventKind.DESTROY, task_id=int(task_id))

    @property
    def id(self) -> int:
        if self.task is not None:
            return self.task.id
        return cast(int, self.task_id)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> LiveEvent:
        """Parse a broadcast `{action, task}` / `{action: "destroy", id}` message."""
        if not isinstance(payload, Mapping):
            raise ValueError("Live event payload must be an object")
        try:
            kind = EventKind(str(payload.get("action") or ""))
        except ValueError:
            raise ValueError(f"Unknown live event action: {payload.get('action')!r}") from None

        if kind is EventKind.DESTROY:
            raw_id = payload.get("id")
            if raw_id is None and isinstance(payload.get("task"), Mapping):
                raw_id = payload["task"].get("id")
            try:
                return cls.destroy(int(raw_id))  # type: ignore[arg-type]
            except (TypeError, ValueError):
                raise ValueError(f"destroy event has no valid id: {raw_id!r}") from None

        raw_task = payload.get("task")
        if not isinstance(raw_task, Mapping):
            raise ValueError(f"{kind.value} event has no task")
        task = Task.from_dict(raw_task)
        return cls.create(task) if kind is EventKind.CREATE else cls.update(task)

    def to_payload(self) -> dict[str, Any]:
        if self.task is None:
            return {"action": self.kind.value, "id": self.id}
        return {"action": self.kind.value, "task": self.task.to_dict()}
