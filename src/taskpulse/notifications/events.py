# src/taskpulse/notifications/events.py

"""
Notification events.

One frozen dataclass per notification kind. Required fields are checked in
__post_init__, so an event that exists is always well-formed. Events are
ephemeral and never persisted.

Preference grouping is an explicit table (KIND_CATEGORIES), not derived
from the kind strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, Final

from ..tasks.task_models import format_ts


class NotificationKind(StrEnum):
    TASK_ASSIGNMENT = "task_assignment"
    BULK_TASK_ASSIGNMENT = "bulk_task_assignment"
    TASK_STATUS_CHANGE = "task_status_change"
    TASK_COMPLETION = "task_completion"
    TASK_PRIORITY_CHANGE = "task_priority_change"
    TASK_COMMENT = "task_comment"
    OVERDUE_TASK = "overdue_task"
    OVERDUE_ESCALATION = "overdue_escalation"
    CRITICAL_OVERDUE = "critical_overdue"
    DUE_SOON = "due_soon"


class NotificationCategory(StrEnum):
    TASK_ASSIGNMENTS = "task_assignments"
    BULK_ASSIGNMENTS = "bulk_assignments"
    TASK_STATUS_CHANGES = "task_status_changes"
    PRIORITY_CHANGES = "priority_changes"
    TASK_COMMENTS = "task_comments"
    DUE_DATE_REMINDERS = "due_date_reminders"
    ESCALATIONS = "escalations"


KIND_CATEGORIES: Final[dict[NotificationKind, NotificationCategory]] = {
    NotificationKind.TASK_ASSIGNMENT: NotificationCategory.TASK_ASSIGNMENTS,
    NotificationKind.BULK_TASK_ASSIGNMENT: NotificationCategory.BULK_ASSIGNMENTS,
    NotificationKind.TASK_STATUS_CHANGE: NotificationCategory.TASK_STATUS_CHANGES,
    # A completion is a status change seen from the assigner's side.
    NotificationKind.TASK_COMPLETION: NotificationCategory.TASK_STATUS_CHANGES,
    NotificationKind.TASK_PRIORITY_CHANGE: NotificationCategory.PRIORITY_CHANGES,
    NotificationKind.TASK_COMMENT: NotificationCategory.TASK_COMMENTS,
    NotificationKind.OVERDUE_TASK: NotificationCategory.DUE_DATE_REMINDERS,
    NotificationKind.DUE_SOON: NotificationCategory.DUE_DATE_REMINDERS,
    # Managers and HR opt out of escalations separately from their own reminders.
    NotificationKind.OVERDUE_ESCALATION: NotificationCategory.ESCALATIONS,
    NotificationKind.CRITICAL_OVERDUE: NotificationCategory.ESCALATIONS,
}


def category_for(kind: NotificationKind | str) -> NotificationCategory:
    return KIND_CATEGORIES[NotificationKind(kind)]


@dataclass(slots=True, frozen=True)
class ActorSummary:
    id: str
    display_name: str

    def to_payload(self) -> dict[str, str]:
        return {"id": self.id, "displayName": self.display_name}


SYSTEM_ACTOR: Final[ActorSummary] = ActorSummary(id="system", display_name="System")


def _require_text(name: str, value: object) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")


def _require_non_negative_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative int, got {value!r}")


@dataclass(slots=True, frozen=True, kw_only=True)
class _TaskEvent:
    kind: ClassVar[NotificationKind]

    task_id: int
    title: str
    subject_user_id: str
    actor: ActorSummary

    def __post_init__(self) -> None:
        if isinstance(self.task_id, bool) or not isinstance(self.task_id, int) or self.task_id <= 0:
            raise ValueError(f"task_id must be a positive int, got {self.task_id!r}")
        if not isinstance(self.title, str):
            raise ValueError("title must be a string")
        _require_text("subject_user_id", self.subject_user_id)
        if not isinstance(self.actor, ActorSummary):
            raise ValueError("actor must be an ActorSummary")
        self._check()

    def _check(self) -> None:
        """Kind-specific validation."""

    def extra_fields(self) -> dict[str, Any]:
        """Kind-specific payload fields (camelCase keys)."""
        return {}


@dataclass(slots=True, frozen=True, kw_only=True)
class TaskAssignmentEvent(_TaskEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.TASK_ASSIGNMENT

    priority: str
    due_at: float | None = None

    def _check(self) -> None:
        _require_text("priority", self.priority)

    def extra_fields(self) -> dict[str, Any]:
        return {"priority": self.priority, "dueAt": format_ts(self.due_at)}


@dataclass(slots=True, frozen=True, kw_only=True)
class TaskStatusChangeEvent(_TaskEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.TASK_STATUS_CHANGE

    old_status: str
    new_status: str

    def _check(self) -> None:
        _require_text("old_status", self.old_status)
        _require_text("new_status", self.new_status)
        if self.old_status == self.new_status:
            raise ValueError("status change event needs two different statuses")

    def extra_fields(self) -> dict[str, Any]:
        return {"oldStatus": self.old_status, "newStatus": self.new_status}


@dataclass(slots=True, frozen=True, kw_only=True)
class TaskCompletionEvent(_TaskEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.TASK_COMPLETION

    completed_at: float

    def _check(self) -> None:
        if not isinstance(self.completed_at, (int, float)):
            raise ValueError("completed_at must be a timestamp")

    def extra_fields(self) -> dict[str, Any]:
        return {"completedAt": format_ts(self.completed_at)}


@dataclass(slots=True, frozen=True, kw_only=True)
class TaskPriorityChangeEvent(_TaskEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.TASK_PRIORITY_CHANGE

    old_priority: str
    new_priority: str

    def _check(self) -> None:
        _require_text("old_priority", self.old_priority)
        _require_text("new_priority", self.new_priority)

    def extra_fields(self) -> dict[str, Any]:
        return {"oldPriority": self.old_priority, "newPriority": self.new_priority}


@dataclass(slots=True, frozen=True, kw_only=True)
class OverdueTaskEvent(_TaskEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.OVERDUE_TASK

    days_overdue: int
    due_at: float

    def _check(self) -> None:
        _require_non_negative_int("days_overdue", self.days_overdue)

    def extra_fields(self) -> dict[str, Any]:
        return {"daysOverdue": self.days_overdue, "dueAt": format_ts(self.due_at)}


@dataclass(slots=True, frozen=True, kw_only=True)
class DueSoonEvent(_TaskEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.DUE_SOON

    days_until_due: int
    due_at: float

    def _check(self) -> None:
        _require_non_negative_int("days_until_due", self.days_until_due)

    def extra_fields(self) -> dict[str, Any]:
        return {"daysUntilDue": self.days_until_due, "dueAt": format_ts(self.due_at)}


@dataclass(slots=True, frozen=True, kw_only=True)
class BulkTaskAssignmentEvent(_TaskEvent):
    """One task out of a batch handed to several assignees at once."""

    kind: ClassVar[NotificationKind] = NotificationKind.BULK_TASK_ASSIGNMENT

    priority: str
    batch_size: int
    due_at: float | None = None

    def _check(self) -> None:
        _require_text("priority", self.priority)
        _require_non_negative_int("batch_size", self.batch_size)
        if self.batch_size == 0:
            raise ValueError("batch_size must be positive")

    def extra_fields(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "dueAt": format_ts(self.due_at),
            "batchSize": self.batch_size,
        }


@dataclass(slots=True, frozen=True, kw_only=True)
class TaskCommentEvent(_TaskEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.TASK_COMMENT

    excerpt: str

    def _check(self) -> None:
        _require_text("excerpt", self.excerpt)

    def extra_fields(self) -> dict[str, Any]:
        return {"excerpt": self.excerpt}


@dataclass(slots=True, frozen=True, kw_only=True)
class _EscalationEvent(_TaskEvent):
    """
    Overdue task reported to someone other than its assignee.

    `employee` is the assignee the task is stuck with; `subject_user_id`
    is the manager or HR contact receiving the escalation.
    """

    days_overdue: int
    due_at: float
    employee: ActorSummary

    def _check(self) -> None:
        _require_non_negative_int("days_overdue", self.days_overdue)
        if not isinstance(self.employee, ActorSummary):
            raise ValueError("employee must be an ActorSummary")
        if self.employee.id == self.subject_user_id:
            raise ValueError("escalation cannot target the assignee")

    def extra_fields(self) -> dict[str, Any]:
        return {
            "daysOverdue": self.days_overdue,
            "dueAt": format_ts(self.due_at),
            "employee": self.employee.to_payload(),
        }


@dataclass(slots=True, frozen=True, kw_only=True)
class OverdueEscalationEvent(_EscalationEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.OVERDUE_ESCALATION


@dataclass(slots=True, frozen=True, kw_only=True)
class CriticalOverdueEvent(_EscalationEvent):
    kind: ClassVar[NotificationKind] = NotificationKind.CRITICAL_OVERDUE


NotificationEvent = (
    TaskAssignmentEvent
    | BulkTaskAssignmentEvent
    | TaskStatusChangeEvent
    | TaskCompletionEvent
    | TaskPriorityChangeEvent
    | TaskCommentEvent
    | OverdueTaskEvent
    | OverdueEscalationEvent
    | CriticalOverdueEvent
    | DueSoonEvent
)
