# src/taskpulse/core/state.py

from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..cli.commands import CommandRegistry
    from ..notifications.dispatcher import NotificationDispatcher
    from ..notifications.preference_store import PreferenceStore
    from ..realtime.registry import ConnectionRegistry
    from ..tasks.task_lifecycle import TaskLifecycleManager
    from ..tasks.task_scheduler import ScannerBackgroundRunner, ScanScheduler
    from ..tasks.task_store import TaskStore
    from ..users.directory import StaticUserDirectory


@dataclass
class AppState:
    """
    The service graph, built once by the composition root (cli/bootstrap.py)
    and passed by reference to everything that needs a collaborator.
    """

    settings: Any

    task_store: TaskStore
    preferences: PreferenceStore
    users: StaticUserDirectory

    registry: ConnectionRegistry
    dispatcher: NotificationDispatcher
    lifecycle: TaskLifecycleManager

    schedulers: list[ScanScheduler] = field(default_factory=list)
    commands: CommandRegistry | None = None
    executor: Executor | None = None
    scanner_runner: ScannerBackgroundRunner | None = None

    def scheduler(self, name: str) -> ScanScheduler | None:
        return next((s for s in self.schedulers if s.name == name), None)
