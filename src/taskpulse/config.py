# src/taskpulse/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app, built once by the composition root.
- No secrets required at import time.
- Every tunable of the scanners and the dispatcher lives here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKPULSE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_map(name: str) -> dict[str, str]:
    """Parse "k1=v1, k2=v2" into a dict; malformed items are skipped."""
    raw = os.getenv(name)
    out: dict[str, str] = {}
    if raw is None or raw.strip() == "":
        return out
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip() and value.strip():
            out[key.strip()] = value.strip()
    return out


def _env_list(name: str) -> list[str]:
    """Parse "a, b, c" into a list; blanks are dropped."""
    raw = os.getenv(name)
    if raw is None:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    preferences_db_path: Path

    # ---- Scanners ----
    overdue_scan_interval_seconds: float
    due_soon_scan_interval_seconds: float
    due_soon_window_hours: float
    scan_batch_limit: int
    scan_item_delay_seconds: float

    # ---- Dispatch ----
    dispatch_workers: int
    timezone: str  # IANA name for quiet hours; "" = host timezone

    # ---- Users ----
    user_names: dict[str, str]  # id -> display name
    managers: dict[str, str]  # employee id -> manager id
    hr_contacts: list[str]  # receive critical overdue escalations

    @property
    def due_soon_window_seconds(self) -> float:
        return self.due_soon_window_hours * 3600.0

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "taskpulse").strip() or "taskpulse"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskpulse"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        preferences_db_path = _env_path(_k("PREFERENCES_DB_PATH"), data_dir / "preferences.sqlite3")

        # Defaults mirror the HR backend jobs: overdue every 2h, reminders daily, 3-day lookahead.
        overdue_scan_interval_seconds = _env_float(_k("OVERDUE_SCAN_INTERVAL_SECONDS"), 7200.0)
        due_soon_scan_interval_seconds = _env_float(_k("DUE_SOON_SCAN_INTERVAL_SECONDS"), 86400.0)
        due_soon_window_hours = _env_float(_k("DUE_SOON_WINDOW_HOURS"), 72.0)
        scan_batch_limit = _env_int(_k("SCAN_BATCH_LIMIT"), 200)
        scan_item_delay_seconds = _env_float(_k("SCAN_ITEM_DELAY_SECONDS"), 0.1)

        dispatch_workers = _env_int(_k("DISPATCH_WORKERS"), 4)
        timezone = _env(_k("TIMEZONE"), "").strip()

        user_names = _env_map(_k("USERS"))
        managers = _env_map(_k("MANAGERS"))
        hr_contacts = _env_list(_k("HR_CONTACTS"))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            preferences_db_path=preferences_db_path,
            overdue_scan_interval_seconds=overdue_scan_interval_seconds,
            due_soon_scan_interval_seconds=due_soon_scan_interval_seconds,
            due_soon_window_hours=due_soon_window_hours,
            scan_batch_limit=scan_batch_limit,
            scan_item_delay_seconds=scan_item_delay_seconds,
            dispatch_workers=dispatch_workers,
            timezone=timezone,
            user_names=user_names,
            managers=managers,
            hr_contacts=hr_contacts,
        )


def get_settings() -> Settings:
    """Read settings from the environment. The composition root calls this once."""
    return Settings.from_env()
