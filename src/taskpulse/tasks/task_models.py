# src/taskpulse/tasks/task_models.py

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import StrEnum

from ..core.errors import ValidationError

SECONDS_PER_DAY = 86400.0

# (due_at, id) of the last row of a page; scanner queries resume after it.
TaskCursor = tuple[float, int]


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - completed and cancelled are terminal; see task_rules for the legal moves.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


@dataclass(slots=True)
class Task:
    id: int
    title: str
    description: str
    assigned_to: str
    assigned_by: str
    status: TaskStatus
    priority: TaskPriority
    due_at: float | None

    created_at: float
    updated_at: float
    completed_at: float | None = None
    deleted_at: float | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(slots=True)
class TaskSpec:
    """Input of create_task. assigned_to defaults to the creating actor."""

    title: str
    description: str = ""
    assigned_to: str | None = None
    priority: TaskPriority | str = TaskPriority.MEDIUM
    due_date: str | datetime | date | float | None = None


@dataclass(slots=True)
class TaskPatch:
    """Input of update_task. None means "leave unchanged"; reassignment is not patchable."""

    status: TaskStatus | str | None = None
    title: str | None = None
    description: str | None = None
    priority: TaskPriority | str | None = None
    due_date: str | datetime | date | float | None = None


def parse_due_date(raw: str | datetime | date | float | None) -> float | None:
    """
    Normalize a due date into epoch seconds.

    Accepted:
    - None / "" -> None
    - int/float epoch seconds
    - datetime (naive values are taken as UTC)
    - date (midnight UTC)
    - ISO-8601 string ("2025-03-01", "2025-03-01T17:00:00Z", ...)
    """
    if raw is None:
        return None

    if isinstance(raw, bool):
        raise ValidationError(f"Unparseable due date: {raw!r}")

    if isinstance(raw, (int, float)):
        value = float(raw)
        if not math.isfinite(value):
            raise ValidationError(f"Unparseable due date: {raw!r}")
        return value

    if isinstance(raw, datetime):
        dt = raw if raw.tzinfo is not None else raw.replace(tzinfo=UTC)
        return dt.timestamp()

    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=UTC).timestamp()

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(f"Unparseable due date: {raw!r}") from e
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.timestamp()

    raise ValidationError(f"Unparseable due date: {raw!r}")


def parse_priority(raw: TaskPriority | str) -> TaskPriority:
    try:
        return TaskPriority(str(raw).strip().lower())
    except ValueError as e:
        raise ValidationError(f"Unknown priority: {raw!r}") from e


def parse_status(raw: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(str(raw).strip().lower())
    except ValueError as e:
        raise ValidationError(f"Unknown status: {raw!r}") from e


def days_overdue(due_at: float, now_ts: float) -> int:
    """Whole days elapsed since due_at (floor); 0 while less than a day late."""
    return max(0, math.floor((now_ts - due_at) / SECONDS_PER_DAY))


def days_until_due(due_at: float, now_ts: float) -> int:
    """Days left until due_at, rounded up (due later today counts as 1)."""
    return max(0, math.ceil((due_at - now_ts) / SECONDS_PER_DAY))


def format_ts(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, UTC).isoformat()
