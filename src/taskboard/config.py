# src/taskboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing is contacted at import time; the backend is chosen in bootstrap.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_PREFIX = "TASKBOARD"

BACKENDS = ("http", "local")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def cable_url_for(api_url: str) -> str:
    """ActionCable mounts at /cable on the API host, over ws(s)."""
    base = api_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://") :]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://") :]
    return f"{base}/cable"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Remote task store ----
    backend: str
    api_url: str
    http_connect_timeout: float
    http_read_timeout: float

    # ---- Live updates ----
    cable_url: str
    cable_channel: str
    cable_reconnect_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskboard") or "taskboard"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        backend = _env(_k("BACKEND"), "http").strip().lower()
        if backend not in BACKENDS:
            backend = "http"

        # VITE_API_URL is what the web frontend reads; accept it so both share one .env.
        api_url = (
            _first_env(_k("API_URL"), "VITE_API_URL", default="http://localhost:3000")
            or "http://localhost:3000"
        ).strip()

        http_connect_timeout = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        http_read_timeout = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 15.0)

        cable_url = (_first_env(_k("CABLE_URL"), default="") or "").strip() or cable_url_for(api_url)
        cable_channel = _env(_k("CABLE_CHANNEL"), "TasksChannel").strip() or "TasksChannel"
        cable_reconnect_seconds = max(0.1, _env_float(_k("CABLE_RECONNECT_SECONDS"), 3.0))

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskboard"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            backend=backend,
            api_url=api_url,
            http_connect_timeout=http_connect_timeout,
            http_read_timeout=http_read_timeout,
            cable_url=cable_url,
            cable_channel=cable_channel,
            cable_reconnect_seconds=cable_reconnect_seconds,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
