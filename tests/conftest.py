# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskboard.cli.bootstrap import create_initial_state
from taskboard.core.state import AppState


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic (local backend, tmp SQLite).
    """
    return SimpleNamespace(
        app_name="taskboard-test",
        log_level="DEBUG",
        backend="local",
        api_url="http://localhost:3000",
        http_connect_timeout=1.0,
        http_read_timeout=1.0,
        cable_url="ws://localhost:3000/cable",
        cable_channel="TasksChannel",
        cable_reconnect_seconds=0.1,
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired like production, against the local backend.

    NOTE: We keep the real SQLite TaskStore here because its behavior
    (ids, ordering, validation) is part of what we want to test.
    """
    return create_initial_state(settings=settings)
