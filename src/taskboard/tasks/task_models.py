# src/taskboard/tasks/task_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

TITLE_MAX_LENGTH = 255

# Only these keys are accepted by create/update; anything else is dropped.
TASK_FIELDS = ("title", "description", "status")


class TaskStatus(StrEnum):
    """
    Task lifecycle status. Each value doubles as a board column key.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def parse(cls, raw: Any) -> TaskStatus:
        """Strict parse for wire/user input; raises ValueError on unknown values."""
        if isinstance(raw, TaskStatus):
            return raw
        try:
            return cls(str(raw).strip())
        except ValueError:
            raise ValueError(f"Unknown task status: {raw!r}") from None

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except Exception:
            return cls.TODO


def _parse_ts(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, (int, float)):
        dt = datetime.fromtimestamp(float(raw), tz=UTC)
    elif isinstance(raw, str) and raw.strip():
        dt = datetime.fromisoformat(raw.strip())
    else:
        raise ValueError(f"Invalid timestamp: {raw!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


@dataclass(frozen=True, slots=True)
class Task:
    id: int
    title: str
    description: str
    status: TaskStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        """Parse the JSON representation served by the task store."""
        if not isinstance(data, Mapping):
            raise ValueError("Task payload must be an object")
        try:
            task_id = int(data["id"])
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"Task payload has no valid id: {data.get('id')!r}") from None

        created_at = _parse_ts(data.get("created_at"))
        updated_at = _parse_ts(data.get("updated_at") or data.get("created_at"))

        return cls(
            id=task_id,
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            status=TaskStatus.parse(data.get("status") or TaskStatus.TODO),
            created_at=created_at,
            updated_at=updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class TaskSuggestion:
    title: str
    description: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskSuggestion:
        return cls(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
        )


def clean_task_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only permitted keys; status values are normalized to plain strings."""
    out: dict[str, Any] = {}
    for key in TASK_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key == "status" and isinstance(value, TaskStatus):
            value = value.value
        out[key] = value
    return out


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_task_fields(fields: Mapping[str, Any], *, partial: bool = False) -> dict[str, list[str]]:
    """
    Check title/description/status the way the task store does.

    Returns field -> messages; an empty dict means the fields are valid.
    With partial=True only keys present in `fields` are checked (PATCH semantics).
    """
    errors: dict[str, list[str]] = {}

    def add(field_name: str, msg: str) -> None:
        errors.setdefault(field_name, []).append(msg)

    if not partial or "title" in fields:
        title = fields.get("title")
        if _blank(title):
            add("title", "Title can't be blank")
        elif len(str(title)) > TITLE_MAX_LENGTH:
            add("title", f"Title is too long (maximum is {TITLE_MAX_LENGTH} characters)")

    if not partial or "description" in fields:
        if _blank(fields.get("description")):
            add("description", "Description can't be blank")

    # On create a missing status means "todo"; an explicit empty value is rejected.
    if "status" in fields:
        status = fields.get("status")
        if _blank(status):
            add("status", "Status can't be blank")
        else:
            try:
                TaskStatus.parse(status)
            except ValueError:
                add("status", "Status is not included in the list")

    return errors
