# src/taskpulse/notifications/preference_store.py

from __future__ import annotations

import contextlib
import logging
import re
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

from .events import NotificationCategory

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_hhmm(value: str) -> str:
    """Normalize "9:05" / "09:05" to "09:05"; ValueError otherwise."""
    raw = (value or "").strip()
    if len(raw) == 4 and raw[1] == ":":
        raw = "0" + raw
    if not _HHMM.match(raw):
        raise ValueError(f"Bad time {value!r}, expected HH:MM")
    return raw


@dataclass(slots=True, frozen=True)
class QuietHours:
    """
    Daily window during which a user receives no notifications.

    Both ends are inclusive. A window whose start is later than its end
    wraps past midnight ("22:00"-"07:00").
    """

    start: str
    end: str
    enabled: bool = True

    def contains(self, hhmm: str) -> bool:
        if not self.enabled:
            return False
        # Zero-padded HH:MM strings compare in clock order.
        if self.start > self.end:
            return hhmm >= self.start or hhmm <= self.end
        return self.start <= hhmm <= self.end


class PreferenceStore:
    """
    SQLite store of per-user notification opt-ins.

    One row per (user_id, category). A missing row means the category is
    enabled, so a fresh user receives everything.
    """

    def __init__(self, db_path: str | Path = "preferences.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("PreferenceStore ready db=%s", self._db_path)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_preferences (
                    user_id TEXT NOT NULL,
                    category TEXT NOT NULL,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (user_id, category)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_quiet_hours (
                    user_id TEXT PRIMARY KEY,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    start_hm TEXT NOT NULL,
                    end_hm TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get_preferences(self, user_id: str) -> dict[str, bool]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT category, enabled FROM notification_preferences WHERE user_id = ?",
                (user_id,),
            )
            return {str(r["category"]): bool(r["enabled"]) for r in cur.fetchall()}
        finally:
            conn.close()

    def set_preference(self, user_id: str, category: NotificationCategory | str, enabled: bool) -> None:
        cat = NotificationCategory(category)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO notification_preferences(user_id, category, enabled, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, category)
                DO UPDATE SET enabled = excluded.enabled, updated_at = excluded.updated_at
                """,
                (user_id, cat.value, 1 if enabled else 0, time.time()),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Preference updated user=%s category=%s enabled=%s", user_id, cat.value, enabled)

    def reset_preferences(self, user_id: str) -> None:
        """Drop every explicit choice of user_id, quiet hours included."""
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM notification_preferences WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM notification_quiet_hours WHERE user_id = ?", (user_id,))
            conn.commit()
        finally:
            conn.close()

    # ---------- quiet hours ----------

    def get_quiet_hours(self, user_id: str) -> QuietHours | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT enabled, start_hm, end_hm FROM notification_quiet_hours WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return QuietHours(start=str(row["start_hm"]), end=str(row["end_hm"]), enabled=bool(row["enabled"]))

    def set_quiet_hours(self, user_id: str, start: str, end: str, *, enabled: bool = True) -> QuietHours:
        quiet = QuietHours(start=parse_hhmm(start), end=parse_hhmm(end), enabled=enabled)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO notification_quiet_hours(user_id, enabled, start_hm, end_hm, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id)
                DO UPDATE SET enabled = excluded.enabled, start_hm = excluded.start_hm,
                              end_hm = excluded.end_hm, updated_at = excluded.updated_at
                """,
                (user_id, 1 if enabled else 0, quiet.start, quiet.end, time.time()),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Quiet hours user=%s %s-%s enabled=%s", user_id, quiet.start, quiet.end, enabled)
        return quiet

    def clear_quiet_hours(self, user_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM notification_quiet_hours WHERE user_id = ?", (user_id,))
            conn.commit()
        finally:
            conn.close()
