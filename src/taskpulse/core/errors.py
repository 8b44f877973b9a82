# src/taskpulse/core/errors.py

"""
Error types of the task core.

Callers of create_task/update_task only ever see TaskError subclasses.
NotificationDeliveryError and ScanFailure are raised and caught inside the
notification path and the scanners; they never reach a mutation caller.
"""

from __future__ import annotations


class TaskError(Exception):
    """Base class for errors surfaced to task mutation callers."""


class ValidationError(TaskError):
    """Malformed task input (missing title, unparseable due date, unknown priority)."""


class NotFoundError(TaskError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidTransitionError(TaskError):
    def __init__(self, old_status: str, new_status: str) -> None:
        super().__init__(f"Illegal status transition {old_status} -> {new_status}")
        self.old_status = old_status
        self.new_status = new_status


class ConflictError(TaskError):
    """The task row kept changing underneath a conditional update."""


class NotificationDeliveryError(Exception):
    """A push or secondary-channel hand-off failed. Logged and swallowed."""


class ScanFailure(Exception):
    """A single task could not be processed during a scan. Logged; the scan continues."""

    def __init__(self, scanner: str, task_id: int) -> None:
        super().__init__(f"{scanner} scan failed for task {task_id}")
        self.scanner = scanner
        self.task_id = task_id
