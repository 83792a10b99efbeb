# src/taskboard/core/errors.py

"""
Error taxonomy shared by every layer above the transport.

Clients translate transport exceptions (httpx, websockets) into these at the
port boundary, so the sync layer and the board only ever match on this module.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping


class TaskBoardError(Exception):
    """Base class; str(err) is always a human-readable message."""


class NetworkFailure(TaskBoardError):
    """The task store could not be reached or answered with an unexpected status."""


class NotFound(TaskBoardError):
    def __init__(self, task_id: int | None, message: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message or (f"Task {task_id} not found" if task_id is not None else "Task not found"))


class ValidationFailure(TaskBoardError):
    """
    Field-level rejection of a create/update.

    messages: full messages as shown to the user ("Title can't be blank").
    fields:   field name -> messages for that field (for per-field display in forms).
    """

    def __init__(
        self,
        messages: Iterable[str],
        fields: Mapping[str, list[str]] | None = None,
    ) -> None:
        self.messages = [str(m) for m in messages]
        self.fields: dict[str, list[str]] = {k: list(v) for k, v in (fields or {}).items()}
        super().__init__("; ".join(self.messages) or "Validation failed")

    @classmethod
    def from_fields(cls, fields: Mapping[str, list[str]]) -> ValidationFailure:
        messages = [m for msgs in fields.values() for m in msgs]
        return cls(messages, fields)


class ChannelDisconnect(TaskBoardError):
    """The live-update subscription dropped; the transport decides whether to reconnect."""
