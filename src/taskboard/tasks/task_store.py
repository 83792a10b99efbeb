# src/taskboard/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..core.errors import NotFound, ValidationFailure
from .task_models import Task, TaskStatus, clean_task_fields, validate_task_fields

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store: the authoritative record when running with the local backend.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Ownership:
    - ids come from AUTOINCREMENT, timestamps from this store; callers never supply them
    - updated_at never goes below created_at or its previous value

    Thread-safety:
    - each method opens its own SQLite connection (LocalTaskService calls us via to_thread)
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'todo',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("status", "TEXT NOT NULL DEFAULT 'todo'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created ON tasks(created_at)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        created_at = float(row["created_at"] or 0.0)
        updated_at = max(float(row["updated_at"] or 0.0), created_at)
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            status=TaskStatus.from_db(row["status"]),
            created_at=datetime.fromtimestamp(created_at, tz=UTC),
            updated_at=datetime.fromtimestamp(updated_at, tz=UTC),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_tasks(self) -> list[Task]:
        """All tasks, newest first by creation time (id breaks ties)."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks ORDER BY created_at DESC, id DESC")
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        description: str,
        status: TaskStatus | str | None = None,
    ) -> Task:
        fields: dict[str, Any] = {"title": title, "description": description}
        if status is not None:
            fields["status"] = status
        errors = validate_task_fields(fields)
        if errors:
            raise ValidationFailure.from_fields(errors)

        st = TaskStatus.parse(status) if status is not None else TaskStatus.TODO
        now = time.time()

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(title, description, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (str(title), str(description), st.value, now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s status=%s", task_id, st.value)
        finally:
            conn.close()

        task = self.get_task(task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    def update_task(self, task_id: int, fields: Mapping[str, Any]) -> Task:
        """
        Apply a partial update. Raises NotFound / ValidationFailure.

        An empty (or fully filtered-out) update still succeeds and returns the task unchanged.
        """
        clean = clean_task_fields(fields)
        errors = validate_task_fields(clean, partial=True)
        if errors:
            raise ValidationFailure.from_fields(errors)

        sets: list[str] = []
        params: list[Any] = []

        if "title" in clean:
            sets.append("title = ?")
            params.append(str(clean["title"]))

        if "description" in clean:
            sets.append("description = ?")
            params.append(str(clean["description"]))

        if "status" in clean:
            sets.append("status = ?")
            params.append(TaskStatus.parse(clean["status"]).value)

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT updated_at FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            if row is None:
                raise NotFound(task_id)

            if sets:
                sets.append("updated_at = ?")
                params.append(max(time.time(), float(row["updated_at"] or 0.0)))
                params.append(int(task_id))
                cur.execute(f"UPDATE tasks SET {', '.join(sets)} WHERE id = ?", params)
                conn.commit()
                logger.debug("Task updated id=%s fields=%s", task_id, sorted(clean))
        finally:
            conn.close()

        task = self.get_task(task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    def delete_task(self, task_id: int) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            if cur.rowcount != 1:
                raise NotFound(task_id)
            logger.debug("Task deleted id=%s", task_id)
        finally:
            conn.close()
