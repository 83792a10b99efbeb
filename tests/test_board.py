# tests/test_board.py

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from taskboard.core.errors import TaskBoardError, ValidationFailure
from taskboard.live.events import LiveEvent
from taskboard.sync.board import (
    COLUMN_ORDER,
    BoardReconciler,
    DragPhase,
    DropOutcome,
    Slot,
    build_columns,
)
from taskboard.sync.task_sync import TaskSync
from taskboard.tasks.task_models import Task, TaskStatus

from .fakes import FakeTaskRepo, make_task, network_down

TODO = TaskStatus.TODO
IN_PROGRESS = TaskStatus.IN_PROGRESS
DONE = TaskStatus.DONE


def ids(board: BoardReconciler, status: TaskStatus) -> list[int]:
    return [t.id for t in board.column(status)]


async def loaded(tasks: list[Task]) -> tuple[FakeTaskRepo, TaskSync, BoardReconciler]:
    repo = FakeTaskRepo(tasks)
    sync = TaskSync(repo)
    board = BoardReconciler(sync)
    await sync.load_all()
    return repo, sync, board


class GatedRepo(FakeTaskRepo):
    """Holds update() for the given task ids until `gate` is set; then fails them with `error`."""

    def __init__(self, tasks: list[Task], held: set[int], error: TaskBoardError | None = None) -> None:
        super().__init__(tasks)
        self.gate = asyncio.Event()
        self.held = held
        self.error = error or network_down()

    async def update(self, task_id: int, fields: Mapping[str, Any]) -> Task:
        if task_id in self.held:
            self.calls.append(("update", (task_id, dict(fields))))
            await self.gate.wait()
            raise self.error
        return await super().update(task_id, fields)


def test_build_columns_partitions_by_status() -> None:
    tasks = [make_task(3, "done"), make_task(2, "todo"), make_task(1, "todo")]
    columns = build_columns(tasks)

    assert list(columns) == list(COLUMN_ORDER)
    assert [t.id for t in columns[TODO]] == [2, 1]
    assert columns[IN_PROGRESS] == []
    assert [t.id for t in columns[DONE]] == [3]


@pytest.mark.asyncio
async def test_at_rest_every_task_is_in_exactly_its_status_column() -> None:
    _repo, sync, board = await loaded(
        [make_task(1), make_task(2, "in_progress"), make_task(3, "done"), make_task(4)]
    )
    sync.on_event(LiveEvent.update(make_task(4, "done")))
    sync.on_event(LiveEvent.destroy(2))
    sync.on_event(LiveEvent.create(make_task(5, "in_progress")))

    assert board.phase is DragPhase.IDLE
    for task in sync.tasks:
        homes = [s for s in COLUMN_ORDER if task.id in ids(board, s)]
        assert homes == [task.status]
    assert sum(len(board.column(s)) for s in COLUMN_ORDER) == len(sync.tasks)


@pytest.mark.asyncio
async def test_drop_on_own_slot_is_a_noop() -> None:
    repo, _sync, board = await loaded([make_task(1), make_task(2)])
    before = board.columns

    board.drag_start(1)
    outcome = await board.drag_end(1, Slot(TODO, 1), Slot(TODO, 1))

    assert outcome is DropOutcome.NOOP
    assert repo.updates() == []
    assert dict(board.columns) == dict(before)
    assert board.phase is DragPhase.IDLE


@pytest.mark.asyncio
async def test_drop_without_target_is_a_noop() -> None:
    repo, _sync, board = await loaded([make_task(1)])

    board.drag_start(1)
    assert board.phase is DragPhase.DRAGGING
    assert await board.drag_end(1, Slot(TODO, 0), None) is DropOutcome.NOOP

    assert repo.updates() == []
    assert ids(board, TODO) == [1]
    assert board.active_task_id is None


@pytest.mark.asyncio
async def test_failed_update_reverts_to_collection() -> None:
    repo, sync, board = await loaded([make_task(1, "todo")])
    repo.fail_updates = network_down()

    board.drag_start(1)
    outcome = await board.drag_end(1, Slot(TODO, 0), Slot(DONE, 0))

    assert outcome is DropOutcome.REVERTED
    assert repo.updates() == [(1, {"status": "done"})]
    assert ids(board, TODO) == [1]
    assert ids(board, DONE) == []
    assert board.column(TODO)[0].status is TODO
    assert sync.get(1).status is TODO
    assert board.phase is DragPhase.IDLE


@pytest.mark.asyncio
async def test_successful_drop_shows_optimistic_view_without_flicker() -> None:
    repo, sync, board = await loaded([make_task(1, "todo")])
    renders: list[tuple[list[int], list[int]]] = []
    board.subscribe(lambda cols: renders.append(([t.id for t in cols[TODO]], [t.id for t in cols[IN_PROGRESS]])))

    board.drag_start(1)
    outcome = await board.drag_end(1, Slot(TODO, 0), Slot(IN_PROGRESS, 0))
    assert outcome is DropOutcome.CONFIRMED

    # optimistic render happened before the remote call resolved
    assert renders[0] == ([], [1])
    assert repo.updates() == [(1, {"status": "in_progress"})]

    await sync.load_all()

    assert sync.get(1).status is IN_PROGRESS
    assert all(render == ([], [1]) for render in renders)
    assert ids(board, IN_PROGRESS) == [1]


@pytest.mark.asyncio
async def test_drop_with_stale_source_is_aborted_without_remote_call() -> None:
    repo, _sync, board = await loaded([make_task(1), make_task(2)])
    assert ids(board, TODO) == [2, 1]

    board.drag_start(1)
    outcome = await board.drag_end(1, Slot(TODO, 0), Slot(DONE, 0))
    assert outcome is DropOutcome.ABORTED

    board.drag_start(1)
    outcome = await board.drag_end(1, Slot(TODO, 7), Slot(DONE, 0))
    assert outcome is DropOutcome.ABORTED

    assert repo.updates() == []
    assert ids(board, TODO) == [2, 1]


@pytest.mark.asyncio
async def test_destination_index_is_clamped_to_column_end() -> None:
    _repo, _sync, board = await loaded([make_task(1), make_task(2, "done"), make_task(3, "done")])

    board.drag_start(1)
    assert await board.drag_end(1, Slot(TODO, 0), Slot(DONE, 99)) is DropOutcome.CONFIRMED

    assert ids(board, DONE) == [3, 2, 1]


@pytest.mark.asyncio
async def test_reorder_within_column_keeps_status() -> None:
    repo, _sync, board = await loaded([make_task(1), make_task(2), make_task(3)])
    assert ids(board, TODO) == [3, 2, 1]

    board.drag_start(3)
    assert await board.drag_end(3, Slot(TODO, 0), Slot(TODO, 2)) is DropOutcome.CONFIRMED

    assert ids(board, TODO) == [2, 1, 3]
    assert repo.updates() == [(3, {"status": "todo"})]


@pytest.mark.asyncio
async def test_remote_changes_wait_until_gesture_ends() -> None:
    _repo, sync, board = await loaded([make_task(1)])

    board.drag_start(1)
    sync.on_event(LiveEvent.create(make_task(2)))
    assert ids(board, TODO) == [1]

    await board.drag_end(1, Slot(TODO, 0), None)
    assert ids(board, TODO) == [2, 1]


@pytest.mark.asyncio
async def test_next_change_after_confirmed_drop_rebuilds() -> None:
    _repo, sync, board = await loaded([make_task(1), make_task(2)])

    # reorder is optimistic only; the collection order is unchanged
    board.drag_start(2)
    await board.drag_end(2, Slot(TODO, 0), Slot(TODO, 1))
    assert ids(board, TODO) == [1, 2]

    sync.on_event(LiveEvent.create(make_task(3, "done")))
    assert ids(board, TODO) == [2, 1]
    assert ids(board, DONE) == [3]


@pytest.mark.asyncio
async def test_superseded_failure_rebuilds_when_newer_gesture_settles() -> None:
    repo = GatedRepo([make_task(1), make_task(2)], held={1})
    sync = TaskSync(repo)
    board = BoardReconciler(sync)
    await sync.load_all()

    board.drag_start(1)
    first = asyncio.create_task(board.drag_end(1, Slot(TODO, 1), Slot(DONE, 0)))
    while board.phase is not DragPhase.COMMITTING:
        await asyncio.sleep(0)

    board.drag_start(2)
    repo.gate.set()
    assert await first is DropOutcome.REVERTED

    # the newer gesture still owns the view
    assert board.phase is DragPhase.DRAGGING
    assert ids(board, DONE) == [1]

    source = board.locate(2)
    assert source == Slot(TODO, 0)
    assert await board.drag_end(2, source, Slot(IN_PROGRESS, 0)) is DropOutcome.CONFIRMED

    assert ids(board, TODO) == [1]
    assert ids(board, IN_PROGRESS) == [2]
    assert ids(board, DONE) == []


@pytest.mark.asyncio
async def test_superseded_rejection_after_newer_gesture_settled_rebuilds_at_once() -> None:
    rejected = ValidationFailure.from_fields({"status": ["Status is not included in the list"]})
    repo = GatedRepo([make_task(1), make_task(2)], held={1}, error=rejected)
    sync = TaskSync(repo)
    board = BoardReconciler(sync)
    await sync.load_all()

    board.drag_start(1)
    first = asyncio.create_task(board.drag_end(1, Slot(TODO, 1), Slot(DONE, 0)))
    while board.phase is not DragPhase.COMMITTING:
        await asyncio.sleep(0)

    board.drag_start(2)
    assert await board.drag_end(2, Slot(TODO, 0), Slot(IN_PROGRESS, 0)) is DropOutcome.CONFIRMED
    assert board.phase is DragPhase.IDLE

    repo.gate.set()
    assert await first is DropOutcome.REVERTED

    assert sync.get(1).status is TODO
    assert ids(board, TODO) == [1]
    assert ids(board, IN_PROGRESS) == [2]
    assert ids(board, DONE) == []
    assert sync.error is None


@pytest.mark.asyncio
async def test_move_defaults_to_end_of_column() -> None:
    repo, _sync, board = await loaded([make_task(1), make_task(2, "done")])

    assert await board.move(1, "done") is DropOutcome.CONFIRMED
    assert ids(board, DONE) == [2, 1]

    assert await board.move(1, "done") is DropOutcome.NOOP
    assert await board.move(99, "todo") is DropOutcome.NOOP
    assert len(repo.updates()) == 1
