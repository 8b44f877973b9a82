# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskpulse.cli.bootstrap import create_initial_state, shutdown_state
from taskpulse.core.state import AppState
from taskpulse.notifications.dispatcher import NotificationDispatcher
from taskpulse.notifications.preference_store import PreferenceStore
from taskpulse.realtime.registry import ConnectionRegistry
from taskpulse.tasks.task_lifecycle import TaskLifecycleManager
from taskpulse.tasks.task_store import TaskStore
from taskpulse.users.directory import StaticUserDirectory

from .fakes import FakeSecondaryChannel, RecordingNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the services.

    A SimpleNamespace rather than the real config,
    to keep unit tests isolated from the environment and any .env file.
    """
    return SimpleNamespace(
        app_name="taskpulse-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        preferences_db_path=tmp_path / "preferences.sqlite3",
        overdue_scan_interval_seconds=3600.0,
        due_soon_scan_interval_seconds=3600.0,
        due_soon_window_hours=72.0,
        due_soon_window_seconds=72 * 3600.0,
        scan_batch_limit=50,
        scan_item_delay_seconds=0.0,
        # Inline notification dispatch: deterministic assertions.
        dispatch_workers=0,
        user_names={"u1": "Alice", "u2": "Bob", "u3": "Carol"},
        managers={"u2": "u1"},
        hr_contacts=["u3"],
    )


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def preference_store(settings: SimpleNamespace) -> PreferenceStore:
    return PreferenceStore(settings.preferences_db_path)


@pytest.fixture()
def users(settings: SimpleNamespace) -> StaticUserDirectory:
    return StaticUserDirectory(settings.user_names)


@pytest.fixture()
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture()
def secondary() -> FakeSecondaryChannel:
    return FakeSecondaryChannel()


@pytest.fixture()
def dispatcher(
    registry: ConnectionRegistry,
    preference_store: PreferenceStore,
    secondary: FakeSecondaryChannel,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        registry,
        preference_store,
        secondary_channel=secondary,
        clock=lambda: 1_700_000_000.0,
    )


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def lifecycle(
    task_store: TaskStore,
    notifier: RecordingNotifier,
    users: StaticUserDirectory,
) -> TaskLifecycleManager:
    """
    Lifecycle wired to the real SQLite store and a recording notifier.

    NOTE: no executor, so notifications are dispatched inline and visible
    to assertions right after the call returns.
    """
    return TaskLifecycleManager(task_store, notifier, users)


@pytest.fixture()
def state(settings: SimpleNamespace) -> Iterator[AppState]:
    """
    Full AppState from the composition root, on tmp paths.

    No scanner thread is started; commands fall back to running scans inline.
    """
    app_state = create_initial_state(settings=settings)
    yield app_state
    shutdown_state(app_state)
