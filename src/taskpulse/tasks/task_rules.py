# src/taskpulse/tasks/task_rules.py

"""Task status rules: allow/deny checks for status changes."""

from __future__ import annotations

from typing import Final

from ..core.errors import InvalidTransitionError
from .task_models import TaskStatus

TERMINAL_STATUSES: Final[frozenset[TaskStatus]] = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.CANCELLED}
)

OPEN_STATUSES: Final[frozenset[TaskStatus]] = frozenset(
    {TaskStatus.TODO, TaskStatus.IN_PROGRESS}
)

_TRANSITIONS: Final[dict[TaskStatus, frozenset[TaskStatus]]] = {
    TaskStatus.TODO: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}
    ),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def is_terminal(status: TaskStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(old: TaskStatus, new: TaskStatus) -> bool:
    """Return True if a transition old -> new is legal. Same-status is not a transition."""
    return new in _TRANSITIONS.get(old, frozenset())


def allowed_transitions(old: TaskStatus) -> frozenset[TaskStatus]:
    return _TRANSITIONS.get(old, frozenset())


def ensure_transition(old: TaskStatus, new: TaskStatus) -> None:
    if not can_transition(old, new):
        raise InvalidTransitionError(old.value, new.value)
