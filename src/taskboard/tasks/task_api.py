# src/taskboard/tasks/task_api.py

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.errors import NetworkFailure, NotFound, ValidationFailure
from .task_models import TASK_FIELDS, Task, TaskStatus, TaskSuggestion, clean_task_fields

logger = logging.getLogger(__name__)

_FIELD_PREFIX = re.compile(r"^(?P<field>[A-Za-z_ ]+?)\s+(?:can't|can’t|is|must|has|should)\b")


def _make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _fields_from_messages(messages: list[str]) -> dict[str, list[str]]:
    """
    Map full messages ("Title can't be blank") back to field names.
    Messages that don't start with a known field are grouped under "base".
    """
    out: dict[str, list[str]] = {}
    for msg in messages:
        m = _FIELD_PREFIX.match(msg)
        name = m.group("field").strip().lower().replace(" ", "_") if m else ""
        if name not in TASK_FIELDS:
            name = "base"
        out.setdefault(name, []).append(msg)
    return out


def _error_messages(response: httpx.Response) -> list[str]:
    try:
        data = response.json()
    except ValueError:
        return []
    if isinstance(data, Mapping):
        errors = data.get("errors")
        if isinstance(errors, list):
            return [str(e) for e in errors]
        if isinstance(errors, Mapping):
            # {"title": ["can't be blank"]} style
            return [f"{str(k).capitalize()} {v}" for k, vs in errors.items() for v in (vs or [])]
        if data.get("error"):
            return [str(data["error"])]
    return []


class TaskApiClient:
    """
    Async client for the task REST API.

    Every failure is translated into a taskboard.core.errors type and logged once;
    nothing is retried here (callers decide what to show).
    """

    def __init__(
        self,
        base_url: str,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=_make_timeout(connect_timeout, read_timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> TaskApiClient:
        return cls(
            str(getattr(settings, "api_url", "http://localhost:3000")),
            connect_timeout=float(getattr(settings, "http_connect_timeout", 5.0)),
            read_timeout=float(getattr(settings, "http_read_timeout", 15.0)),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        what: str,
        task_id: int | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning("Error %s: %s", what, e.__class__.__name__)
            raise NetworkFailure(f"Failed {what}: {e.__class__.__name__}") from e

        if response.is_success:
            return response

        status = response.status_code
        messages = _error_messages(response)
        logger.warning("Error %s: HTTP %s %s", what, status, "; ".join(messages))

        if status == 404:
            raise NotFound(task_id)
        if status == 422:
            raise ValidationFailure(messages, _fields_from_messages(messages))
        raise NetworkFailure(f"Failed {what}: HTTP {status}")

    @staticmethod
    def _parse_task(response: httpx.Response, what: str) -> Task:
        try:
            return Task.from_dict(response.json())
        except ValueError as e:
            logger.warning("Error %s: malformed task payload (%s)", what, e)
            raise NetworkFailure(f"Failed {what}: malformed response") from e

    # ---- Remote Task Store (TaskRepo port) ----

    async def fetch_all(self) -> list[Task]:
        response = await self._request("GET", "/tasks", what="fetching tasks")
        try:
            data = response.json()
            if not isinstance(data, list):
                raise ValueError("expected a list")
            return [Task.from_dict(item) for item in data]
        except ValueError as e:
            logger.warning("Error fetching tasks: malformed payload (%s)", e)
            raise NetworkFailure("Failed fetching tasks: malformed response") from e

    async def fetch_one(self, task_id: int) -> Task:
        what = f"fetching task {task_id}"
        response = await self._request("GET", f"/tasks/{int(task_id)}", what=what, task_id=task_id)
        return self._parse_task(response, what)

    async def create(
        self,
        *,
        title: str,
        description: str,
        status: TaskStatus | str | None = None,
    ) -> Task:
        payload: dict[str, Any] = {"title": title, "description": description}
        if status is not None:
            payload["status"] = str(status)
        response = await self._request("POST", "/tasks", what="creating task", json={"task": payload})
        return self._parse_task(response, "creating task")

    async def update(self, task_id: int, fields: Mapping[str, Any]) -> Task:
        what = f"updating task {task_id}"
        response = await self._request(
            "PATCH",
            f"/tasks/{int(task_id)}",
            what=what,
            task_id=task_id,
            json={"task": clean_task_fields(fields)},
        )
        return self._parse_task(response, what)

    async def delete(self, task_id: int) -> None:
        await self._request(
            "DELETE",
            f"/tasks/{int(task_id)}",
            what=f"deleting task {task_id}",
            task_id=task_id,
        )

    # ---- AI suggestion passthrough ----

    async def suggest_tasks(self, context: str) -> list[TaskSuggestion]:
        response = await self._request(
            "POST",
            "/ai_suggestions/tasks/suggest_tasks",
            what="getting AI suggestions",
            json={"context": context},
        )
        try:
            data = response.json()
            raw = data.get("suggestions") if isinstance(data, Mapping) else None
        except ValueError:
            raw = None
        if not isinstance(raw, list):
            raise NetworkFailure("Failed getting AI suggestions: malformed response")
        return [TaskSuggestion.from_dict(s) for s in raw if isinstance(s, Mapping)]
