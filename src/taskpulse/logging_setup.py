# src/taskpulse/logging_setup.py

from __future__ import annotations

"""
Logging for the taskpulse process.

The console doubles as the interactive REPL, so it only shows what a person at
the prompt should see. Scanners tick in a background thread and the dispatcher
logs every single delivery; both stay out of the console unless something
goes wrong. The log file under the data dir keeps everything.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final

LOG_FORMAT: Final[str] = "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Minimum level a logger needs to reach the console, by name prefix.
# The longest matching prefix wins; anything unlisted needs ERROR.
CONSOLE_THRESHOLDS: Final[dict[str, int]] = {
    "taskpulse": logging.DEBUG,
    "taskpulse.tasks.task_scheduler": logging.WARNING,
    "taskpulse.notifications.dispatcher": logging.WARNING,
    "taskpulse.realtime": logging.WARNING,
    "taskpulse.tasks.task_store": logging.WARNING,
    "taskpulse.notifications.preference_store": logging.WARNING,
    "py.warnings": logging.ERROR,
}

_FILE_MAX_BYTES = 5 * 1024 * 1024
_FILE_BACKUPS = 3


def console_threshold(logger_name: str) -> int:
    best = ""
    for prefix in CONSOLE_THRESHOLDS:
        if (logger_name == prefix or logger_name.startswith(prefix + ".")) and len(prefix) > len(best):
            best = prefix
    return CONSOLE_THRESHOLDS[best] if best else logging.ERROR


def parse_level(name: str | int | None, default: int = logging.INFO) -> int:
    """"debug" / "WARNING" / 20 -> logging level; unknown names give `default`."""
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= console_threshold(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskpulse",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
    app_name: str = "taskpulse",
) -> Path:
    """
    Install the console and rotating-file handlers on the root logger.

    Replaces whatever handlers were there. Call once, before the first log
    line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{app_name}.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(parse_level(console_level))
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = RotatingFileHandler(
        str(log_file), maxBytes=_FILE_MAX_BYTES, backupCount=_FILE_BACKUPS, encoding="utf-8"
    )
    fh.setLevel(parse_level(file_level, logging.DEBUG))
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # asyncio debug chatter from the scanner loop is never useful here.
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.captureWarnings(True)
    return log_file
