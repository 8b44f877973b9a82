# src/taskpulse/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from .task_models import Task, TaskCursor, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class TaskStore:
    """
    SQLite task store.

    The schema is simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - status changes go through a conditional UPDATE (expected_status), so a
      row is never moved from a status the caller did not validate
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    assigned_to TEXT NOT NULL,
                    assigned_by TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'todo',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    due_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    completed_at REAL,
                    deleted_at REAL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col("due_at", "REAL")
            add_col("completed_at", "REAL")
            add_col("deleted_at", "REAL")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due_status ON tasks(status, due_at)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_participants ON tasks(assigned_to, assigned_by)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            assigned_to=str(row["assigned_to"]),
            assigned_by=str(row["assigned_by"]),
            status=TaskStatus.from_db(row["status"]),
            priority=TaskPriority.from_db(row["priority"]),
            due_at=float(row["due_at"]) if row["due_at"] is not None else None,
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            deleted_at=float(row["deleted_at"]) if row["deleted_at"] is not None else None,
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks WHERE deleted_at IS NULL")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        """Return the task row, soft-deleted rows included (callers check is_deleted)."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        assigned_to: str,
        assigned_by: str,
        description: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_at: float | None = None,
        status: TaskStatus = TaskStatus.TODO,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("title is required")
        if not assigned_to or not assigned_by:
            raise ValueError("assigned_to and assigned_by are required")

        now = time.time()

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(
                    title, description, assigned_to, assigned_by,
                    status, priority, due_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title.strip(),
                    (description or "").strip(),
                    assigned_to,
                    assigned_by,
                    status.value,
                    priority.value,
                    due_at,
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
        finally:
            conn.close()

        logger.debug(
            "Task added id=%s assigned_to=%s assigned_by=%s due_at=%s",
            task_id,
            assigned_to,
            assigned_by,
            due_at,
        )
        task = self.get_task(task_id)
        if task is None:
            raise RuntimeError(f"Task {task_id} vanished right after insert")
        return task

    def update_task(
        self,
        task_id: int,
        *,
        expected_status: TaskStatus,
        status: TaskStatus | None = None,
        title: str | None = None,
        description: str | None = None,
        priority: TaskPriority | None = None,
        due_at: float | None = _UNSET,
    ) -> bool:
        """
        Conditional update.

        Applies the given fields only if the row still has expected_status and
        is not soft-deleted. Returns True if exactly one row was updated.

        Entering `completed` stamps completed_at.
        """
        now = time.time()
        fields: list[str] = []
        params: list[Any] = []

        if status is not None:
            fields.append("status = ?")
            params.append(status.value)
            if status == TaskStatus.COMPLETED and expected_status != TaskStatus.COMPLETED:
                fields.append("completed_at = ?")
                params.append(now)

        if title is not None:
            fields.append("title = ?")
            params.append(title.strip())

        if description is not None:
            fields.append("description = ?")
            params.append(description.strip())

        if priority is not None:
            fields.append("priority = ?")
            params.append(priority.value)

        if due_at is not _UNSET:
            fields.append("due_at = ?")
            params.append(None if due_at is None else float(due_at))

        fields.append("updated_at = ?")
        params.append(now)
        params.extend([int(task_id), expected_status.value])

        sql = (
            f"UPDATE tasks SET {', '.join(fields)} "
            "WHERE id = ? AND status = ? AND deleted_at IS NULL"
        )

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def soft_delete_task(self, task_id: int) -> bool:
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "UPDATE tasks SET deleted_at = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
                (now, now, int(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def query_overdue(
        self,
        now_ts: float,
        limit: int = 200,
        *,
        after: TaskCursor | None = None,
    ) -> list[Task]:
        """
        Open, non-deleted tasks whose due_at is strictly before now_ts.

        Ordered by (due_at, id). Pass the last row's (due_at, id) as `after`
        to read the next page.
        """
        return self._query_open_due(
            "due_at < ?", (float(now_ts),), limit=limit, after=after
        )

    def query_due_soon(
        self,
        now_ts: float,
        window_seconds: float,
        limit: int = 200,
        *,
        after: TaskCursor | None = None,
    ) -> list[Task]:
        """Open, non-deleted tasks due within [now_ts, now_ts + window_seconds]. Paged like query_overdue."""
        return self._query_open_due(
            "due_at >= ? AND due_at <= ?",
            (float(now_ts), float(now_ts) + float(window_seconds)),
            limit=limit,
            after=after,
        )

    def _query_open_due(
        self,
        due_clause: str,
        due_params: tuple[float, ...],
        *,
        limit: int,
        after: TaskCursor | None,
    ) -> list[Task]:
        params: list[Any] = list(due_params)
        keyset = ""
        if after is not None:
            keyset = "AND (due_at > ? OR (due_at = ? AND id > ?))"
            params.extend([float(after[0]), float(after[0]), int(after[1])])
        params.append(int(limit))

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT *
                FROM tasks
                WHERE status IN ('todo','in_progress')
                  AND deleted_at IS NULL
                  AND due_at IS NOT NULL
                  AND {due_clause}
                  {keyset}
                ORDER BY due_at ASC, id ASC
                    LIMIT ?
                """,
                params,
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_open_tasks_for_user(self, user_id: str, limit: int = 16) -> list[Task]:
        """Open tasks that involve the given user as assignee or assigner."""
        if not user_id:
            return []

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE status IN ('todo','in_progress')
                  AND deleted_at IS NULL
                  AND (assigned_to = ? OR assigned_by = ?)
                ORDER BY COALESCE(due_at, created_at) ASC
                    LIMIT ?
                """,
                (user_id, user_id, int(limit)),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()
