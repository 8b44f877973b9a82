# src/taskpulse/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the task store, user directory, preference store and transports
swappable and makes testing easier.
"""

from typing import Any, Protocol

from ..notifications.events import ActorSummary, NotificationEvent, NotificationKind
from ..notifications.preference_store import QuietHours
from ..tasks.task_models import Task, TaskCursor, TaskPriority, TaskStatus

Payload = dict[str, Any]
# JSON-ready notification payload pushed to a live session.


class TaskRepo(Protocol):
    def get_task(self, task_id: int) -> Task | None: ...

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
    ) -> Task: ...

    def update_task(
            self,
            task_id: int,
            *,
            expected_status: TaskStatus,
            status: TaskStatus | None = None,
            title: str | None = None,
            description: str | None = None,
            priority: TaskPriority | None = None,
            due_at: float | None = ...,
    ) -> bool: ...

    # Scanner API: pages ordered by (due_at, id), resumed with `after`.
    def query_overdue(
            self, now_ts: float, limit: int = 200, *, after: TaskCursor | None = None
    ) -> list[Task]: ...

    def query_due_soon(
            self,
            now_ts: float,
            window_seconds: float,
            limit: int = 200,
            *,
            after: TaskCursor | None = None,
    ) -> list[Task]: ...


class UserDirectory(Protocol):
    """Resolves user ids into payload summaries and the escalation chain."""
    def resolve_user_summary(self, user_id: str) -> ActorSummary: ...

    def manager_of(self, user_id: str) -> str | None: ...

    def escalation_contacts(self) -> list[str]:
        """HR / admin users who receive critical overdue escalations."""
        ...


class PreferenceRepo(Protocol):
    """category -> enabled. Missing categories are enabled."""
    def get_preferences(self, user_id: str) -> dict[str, bool]: ...

    def get_quiet_hours(self, user_id: str) -> QuietHours | None: ...


class ConnectionHandle(Protocol):
    """
    Transport-side session (websocket, console, ...). Must be hashable;
    the registry keys connections by handle.

    send() must not block for long: transports with their own event loop
    should enqueue onto it and return.
    """

    def send(self, payload: Payload) -> None: ...


class SecondaryChannel(Protocol):
    """Out-of-band channel (e-mail, push) for users without a live session."""
    def deliver(self, user_id: str, payload: Payload) -> None: ...


class Notifier(Protocol):
    """What the lifecycle manager and scanners need from the dispatcher."""
    def dispatch(self, user_id: str, event: NotificationEvent) -> int: ...
    def should_send_notification(self, user_id: str, kind: NotificationKind) -> bool: ...
