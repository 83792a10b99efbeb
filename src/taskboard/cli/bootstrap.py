# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the task store backend (REST API + ActionCable, or local SQLite + in-process channel),
- wires the sync layer and the board on top of it.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import LiveChannel, TaskRepo
from ..core.state import AppState
from ..live.cable import CableChannel
from ..live.local_channel import LocalBroadcaster
from ..sync.board import BoardReconciler
from ..sync.task_sync import TaskSync
from ..tasks.task_api import TaskApiClient
from ..tasks.task_service import LocalTaskService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    repo: TaskRepo
    channel: LiveChannel
    closers = []

    if settings.backend == "local":
        broadcaster = LocalBroadcaster()
        repo = LocalTaskService(TaskStore(settings.tasks_db_path), broadcaster)
        channel = broadcaster.connect()
        logger.info("Using local task store at %s", settings.tasks_db_path)
    else:
        client = TaskApiClient.from_settings(settings)
        repo = client
        channel = CableChannel.from_settings(settings)
        closers.append(client.aclose)
        logger.info("Using task API at %s (live updates: %s)", settings.api_url, settings.cable_url)

    sync = TaskSync(repo, channel)
    board = BoardReconciler(sync)

    return AppState(
        settings=settings,
        repo=repo,
        channel=channel,
        sync=sync,
        board=board,
        closers=closers,
    )


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    state.board.close()
    try:
        await state.sync.stop()
    except Exception:
        logger.exception("Failed to stop sync layer.")

    for close in reversed(state.closers):
        try:
            await close()
        except Exception:
            logger.debug("Closer %r failed.", close, exc_info=True)
