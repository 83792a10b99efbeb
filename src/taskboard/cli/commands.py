# src/taskboard/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, cast

from ..core.errors import TaskBoardError, ValidationFailure
from ..core.state import AppState
from ..sync.board import COLUMN_ORDER, COLUMN_TITLES, Columns, DropOutcome, Slot
from ..tasks.task_models import TASK_FIELDS, TaskStatus

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

CARD_WIDTH = 28


class CommandRegistry:
    """Simple slash-command registry used by the console board (/help, /move, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def _clip(text: str, width: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 1] + "…"


def format_board(columns: Columns, *, active_task_id: int | None = None) -> str:
    """Render the three columns side by side, one card per row."""
    headers = [f"{COLUMN_TITLES[s]} ({len(columns[s])})" for s in COLUMN_ORDER]
    rows = [" | ".join(h.ljust(CARD_WIDTH) for h in headers)]
    rows.append("-+-".join("-" * CARD_WIDTH for _ in COLUMN_ORDER))

    depth = max((len(columns[s]) for s in COLUMN_ORDER), default=0)
    if depth == 0:
        rows.append(" | ".join("(no tasks yet)".ljust(CARD_WIDTH) for _ in COLUMN_ORDER))

    for i in range(depth):
        cells = []
        for status in COLUMN_ORDER:
            items = columns[status]
            if i < len(items):
                task = items[i]
                marker = "*" if task.id == active_task_id else " "
                cells.append(_clip(f"{marker}#{task.id} {task.title}", CARD_WIDTH).ljust(CARD_WIDTH))
            else:
                cells.append(" " * CARD_WIDTH)
        rows.append(" | ".join(cells).rstrip())
    return "\n".join(rows)


def render_state(state: AppState) -> str:
    out = format_board(state.board.columns, active_task_id=state.board.active_task_id)
    if state.sync.loading:
        out += "\n(loading…)"
    if state.sync.error:
        out += f"\n[error] {state.sync.error}"
    return out


def _failure_text(err: TaskBoardError) -> str:
    if isinstance(err, ValidationFailure):
        lines = ["Validation failed:"]
        for field_name, msgs in err.fields.items():
            for msg in msgs:
                lines.append(f"  {field_name}: {msg}")
        if len(lines) == 1:
            lines.append(f"  {err}")
        return "\n".join(lines)
    return f"Error: {err}"


def _parse_id(raw: str) -> int:
    return int(raw.lstrip("#"))


def _parse_slot_args(args: list[str]) -> tuple[TaskStatus, int | None]:
    status = TaskStatus.parse(args[0].lower())
    index = int(args[1]) if len(args) > 1 else None
    return status, index


# ---- handlers ----


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_board(state: AppState, args: list[str]) -> str:
    return render_state(state)


async def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("Refreshing tasks…")
    await state.sync.load_all()
    return render_state(state)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add title | description
    /add title | description | status
    """
    parts = [p.strip() for p in " ".join(args).split("|")]
    if len(parts) < 2:
        return "Usage: /add <title> | <description> [| todo|in_progress|done]"
    title, description = parts[0], parts[1]
    status = parts[2] if len(parts) > 2 and parts[2] else None
    try:
        task = await state.sync.create_task(title=title, description=description, status=status)
    except TaskBoardError as e:
        return _failure_text(e)
    return f"Created #{task.id} ({task.status.value})."


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> <title|description|status> <value...>"""
    if len(args) < 3:
        return f"Usage: /edit <id> <{'|'.join(TASK_FIELDS)}> <value>"
    try:
        task_id = _parse_id(args[0])
    except ValueError:
        return f"Not a task id: {args[0]}"
    field_name = args[1].lower()
    if field_name == "desc":
        field_name = "description"
    if field_name not in TASK_FIELDS:
        return f"Unknown field: {args[1]}. Use one of: {', '.join(TASK_FIELDS)}."
    try:
        task = await state.sync.update_task(task_id, {field_name: " ".join(args[2:])})
    except TaskBoardError as e:
        return _failure_text(e)
    return f"Updated #{task.id}."


async def cmd_rm(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /rm <id>"
    try:
        task_id = _parse_id(args[0])
    except ValueError:
        return f"Not a task id: {args[0]}"
    try:
        await state.sync.delete_task(task_id)
    except TaskBoardError as e:
        return _failure_text(e)
    return f"Deleted #{task_id}."


def cmd_drag(state: AppState, args: list[str]) -> str:
    """Pick a task up; the board stops following remote changes until /drop or /cancel."""
    if len(args) != 1:
        return "Usage: /drag <id>"
    try:
        task_id = _parse_id(args[0])
    except ValueError:
        return f"Not a task id: {args[0]}"
    source = state.board.locate(task_id)
    if source is None:
        return f"Task #{task_id} is not on the board."
    state.board.drag_start(task_id)
    state.drag_source = source
    return f"Dragging #{task_id} from {source.status.value}[{source.index}]. Use /drop <status> [index] or /cancel."


async def _end_drag(state: AppState, destination: Slot | None) -> str:
    task_id = state.board.active_task_id
    source = state.drag_source
    if task_id is None or source is None:
        return "Nothing is being dragged. Use /drag <id> first."
    state.drag_source = None
    outcome = await state.board.drag_end(task_id, source, destination)
    return _outcome_text(task_id, outcome)


def _outcome_text(task_id: int, outcome: DropOutcome) -> str:
    if outcome is DropOutcome.CONFIRMED:
        return f"Moved #{task_id}."
    if outcome is DropOutcome.REVERTED:
        return f"Could not move #{task_id}; the board was restored."
    if outcome is DropOutcome.ABORTED:
        return f"#{task_id} moved elsewhere in the meantime; the board was refreshed."
    return "Nothing changed."


async def cmd_drop(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /drop <todo|in_progress|done> [index]"
    try:
        status, index = _parse_slot_args(args)
    except ValueError as e:
        return f"Bad drop target: {e}"
    if index is None:
        index = len(state.board.column(status))
    return await _end_drag(state, Slot(status, index))


async def cmd_cancel(state: AppState, args: list[str]) -> str:
    return await _end_drag(state, None)


async def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <id> <status> [index]"""
    if len(args) < 2:
        return "Usage: /move <id> <todo|in_progress|done> [index]"
    try:
        task_id = _parse_id(args[0])
        status, index = _parse_slot_args(args[1:])
    except ValueError as e:
        return f"Bad move: {e}"
    outcome = await state.board.move(task_id, status, index)
    return _outcome_text(task_id, outcome)


def cmd_status(state: AppState, args: list[str]) -> str:
    counts = ", ".join(f"{s.value}={len(state.board.column(s))}" for s in COLUMN_ORDER)
    return (
        "Status:\n"
        f"  Backend: {state.backend}\n"
        f"  Live updates: {'connected' if state.channel.connected else 'disconnected'}\n"
        f"  Tasks: {len(state.sync.tasks)} ({counts})\n"
        f"  Drag: {state.board.phase.value}\n"
        f"  Last error: {state.sync.error or '-'}"
    )


async def cmd_suggest(state: AppState, args: list[str]) -> str:
    suggest: Any = getattr(state.repo, "suggest_tasks", None)
    if suggest is None:
        return "Suggestions are only available with the http backend."
    if not args:
        return "Usage: /suggest <what you are working on>"
    try:
        suggestions = await suggest(" ".join(args))
    except TaskBoardError as e:
        return _failure_text(e)
    if not suggestions:
        return "No suggestions."
    lines = ["Suggestions (add one with /add title | description):"]
    for i, s in enumerate(suggestions, start=1):
        lines.append(f"{i}. {s.title} | {s.description}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("board", cmd_board, help_text="Show the board.", aliases=["b", "ls"])
registry.register("refresh", cmd_refresh, help_text="Reload all tasks from the store.")
registry.register("add", cmd_add, help_text="Create a task: /add title | description [| status].")
registry.register("edit", cmd_edit, help_text="Edit a field: /edit <id> title|description|status <value>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del"])
registry.register("drag", cmd_drag, help_text="Pick a task up: /drag <id>.")
registry.register("drop", cmd_drop, help_text="Drop the dragged task: /drop <status> [index].")
registry.register("cancel", cmd_cancel, help_text="Drop the dragged task nowhere.")
registry.register("move", cmd_move, help_text="Drag and drop in one go: /move <id> <status> [index].", aliases=["mv"])
registry.register("status", cmd_status, help_text="Show backend, connection and drag state.")
registry.register("suggest", cmd_suggest, help_text="Ask the store for task ideas: /suggest <context>.")
