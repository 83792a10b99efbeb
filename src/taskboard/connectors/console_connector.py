# src/taskboard/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_state
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_console_loop(state: AppState) -> None:
    """
    Text rendering of the board.

    input() runs in a worker thread so the event loop keeps applying push events
    (and finishing in-flight moves) while we wait for the next command.
    """
    logger.info("Console connector started (backend=%s).", state.backend)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    def on_view_change(_columns) -> None:
        # Remote changes redraw the board; our own command output already includes it.
        if not busy:
            print("\n" + render_state(state), flush=True)

    busy = True
    dispose = state.board.subscribe(on_view_change)
    print(render_state(state), flush=True)
    busy = False

    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not line:
                continue

            if line.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            busy = True
            try:
                response = await command_registry.handle(state, line, emit=_print_ts)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."
            finally:
                busy = False

            if response is None:
                response = "Commands start with '/'. Use /help to list them."

            _print_ts(response)
            if not line.lower().startswith(("/board", "/b ", "/ls", "/refresh", "/help", "/h", "/?", "/status")):
                print(render_state(state), flush=True)
    finally:
        dispose()

    logger.info("Console connector finished.")
