# src/taskpulse/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- builds every service exactly once and wires them into AppState
  (stores, directory, registry, dispatcher, lifecycle manager, scanners,
  console command table).
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import get_settings
from ..core.ports import SecondaryChannel
from ..core.state import AppState
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.preference_store import PreferenceStore
from ..realtime.registry import ConnectionRegistry
from ..tasks.task_lifecycle import TaskLifecycleManager
from ..tasks.task_scheduler import DueSoonScanner, OverdueScanner, ScanScheduler
from ..tasks.task_store import TaskStore
from ..users.directory import StaticUserDirectory
from .commands import build_command_registry

logger = logging.getLogger(__name__)

def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.preferences_db_path.parent.mkdir(parents=True, exist_ok=True)

def _quiet_hours_tz(settings) -> tzinfo | None:
    name = (getattr(settings, "timezone", "") or "").strip()
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; quiet hours use the host timezone", name)
        return None

def build_schedulers(settings, store, notifier, users=None) -> list[ScanScheduler]:
    common = {
        "batch_limit": settings.scan_batch_limit,
        "item_delay_seconds": settings.scan_item_delay_seconds,
    }
    overdue = OverdueScanner(store, notifier, users=users, **common)
    due_soon = DueSoonScanner(
        store, notifier, window_seconds=settings.due_soon_window_seconds, **common
    )
    return [
        ScanScheduler(overdue, interval_seconds=settings.overdue_scan_interval_seconds),
        ScanScheduler(due_soon, interval_seconds=settings.due_soon_scan_interval_seconds),
    ]

def create_initial_state(
    *,
    settings=None,
    secondary_channel: SecondaryChannel | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    task_store = TaskStore(settings.tasks_db_path)
    preferences = PreferenceStore(settings.preferences_db_path)
    users = StaticUserDirectory(
        getattr(settings, "user_names", None),
        managers=getattr(settings, "managers", None),
        hr_contacts=getattr(settings, "hr_contacts", ()),
    )

    registry = ConnectionRegistry()
    dispatcher = NotificationDispatcher(
        registry,
        preferences,
        secondary_channel=secondary_channel,
        tz=_quiet_hours_tz(settings),
    )

    executor: Executor | None = None
    workers = int(getattr(settings, "dispatch_workers", 0) or 0)
    if workers > 0:
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify")

    lifecycle = TaskLifecycleManager(task_store, dispatcher, users, executor=executor)

    state = AppState(
        settings=settings,
        task_store=task_store,
        preferences=preferences,
        users=users,
        registry=registry,
        dispatcher=dispatcher,
        lifecycle=lifecycle,
        schedulers=build_schedulers(settings, task_store, dispatcher, users),
        commands=build_command_registry(),
        executor=executor,
    )
    logger.info(
        "State ready (dispatch_workers=%d, scanners=%s)",
        workers,
        ", ".join(s.name for s in state.schedulers),
    )
    return state

def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    runner = state.scanner_runner
    if runner is not None:
        try:
            runner.stop()
            runner.join(timeout=30.0)
        except Exception:
            logger.exception("Failed to stop scanners.")

    if state.executor is not None:
        try:
            # Let queued notifications go out before the registry is cleared.
            state.executor.shutdown(wait=True)
        except Exception:
            logger.exception("Failed to drain notification executor.")

    try:
        state.registry.clear()
    except Exception:
        logger.debug("Registry clear failed.", exc_info=True)

    # Stores use short-lived sqlite connections per call; close() is a no-op hook.
    state.task_store.close()
