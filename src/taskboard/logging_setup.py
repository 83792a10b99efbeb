# src/taskboard/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Longest matching prefix wins; anything unmatched (third-party, py.warnings) needs ERROR+.
CONSOLE_FLOORS: dict[str, int] = {
    "taskboard.": logging.NOTSET,
    # Reconnects happen in the background; only surface them when something is wrong.
    "taskboard.live.cable": logging.WARNING,
}

# Per-request / per-frame chatter from the transports.
LIBRARY_LEVELS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "websockets": logging.INFO,
}


class _ConsoleNoiseFilter(logging.Filter):
    """Keeps log lines from drowning the board rendered on the same terminal."""

    def __init__(self, floors: dict[str, int] | None = None, default: int = logging.ERROR) -> None:
        super().__init__()
        self._floors = sorted((floors or CONSOLE_FLOORS).items(), key=lambda kv: len(kv[0]), reverse=True)
        self._default = default

    def floor_for(self, name: str) -> int:
        for prefix, level in self._floors:
            if name.startswith(prefix):
                return level
        return self._default

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.floor_for(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskboard",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered, on stderr) plus a full DEBUG log in `log_dir/taskboard.log`.

    Call once at startup; existing root handlers are replaced. Returns the log file path.
    """
    log_file = Path(log_dir) / "taskboard.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.DEBUG)
    for handler in (console, file_handler):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.captureWarnings(True)

    for name, level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
