# src/taskpulse/tasks/task_scheduler.py

from __future__ import annotations

"""
Deadline scanners.

Two independent polling jobs:
- OverdueScanner: open tasks past their due date -> overdue_task, escalated to
  the assignee's manager after one day and to HR contacts after three
- DueSoonScanner: open tasks due within the lookahead window -> due_soon

Each scanner exposes run_once() (one scan, directly awaitable from tests) and
is driven on a timer by ScanScheduler. Scanners only read tasks and feed the
notifier; they never change task state.

A scan walks every candidate: the store is read in pages of batch_limit rows
keyed on (due_at, id) until a short page comes back.

Each task is re-read right before its events are emitted, so a task completed
between the query and the emit is usually skipped. The window is not closed
completely; an occasional stale reminder is accepted.
"""

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final

from ..core.errors import ScanFailure
from ..core.ports import Notifier, TaskRepo, UserDirectory
from ..notifications.events import (
    SYSTEM_ACTOR,
    ActorSummary,
    CriticalOverdueEvent,
    DueSoonEvent,
    NotificationEvent,
    OverdueEscalationEvent,
    OverdueTaskEvent,
)
from .task_models import Task, TaskCursor, days_overdue, days_until_due
from .task_rules import is_terminal

logger = logging.getLogger(__name__)

# Escalate once a task is strictly more than this many days late.
MANAGER_ESCALATION_DAYS: Final[int] = 1
HR_ESCALATION_DAYS: Final[int] = 3

Recipients = list[tuple[str, NotificationEvent]]


class ScanKind(StrEnum):
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"


@dataclass(slots=True)
class ScanReport:
    scanner: ScanKind
    started_at: float
    finished_at: float | None = None
    pages: int = 0
    candidates: int = 0
    dispatched: int = 0
    escalations: int = 0
    skipped: int = 0
    failed: int = 0
    query_failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanner": self.scanner.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "pages": self.pages,
            "candidates": self.candidates,
            "dispatched": self.dispatched,
            "escalations": self.escalations,
            "skipped": self.skipped,
            "failed": self.failed,
            "query_failed": self.query_failed,
        }


class TaskScanner:
    """
    One kind of deadline scan.

    Subclasses provide query() (one page of candidates), is_eligible()
    (recheck on a fresh row) and build_event(). build_notifications() may add
    recipients beyond the assignee.
    """

    kind: ScanKind

    def __init__(
        self,
        store: TaskRepo,
        notifier: Notifier,
        *,
        batch_limit: int = 200,
        item_delay_seconds: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._batch_limit = max(1, int(batch_limit))
        self._item_delay = max(0.0, float(item_delay_seconds))
        self._clock = clock

    def query(self, now_ts: float, after: TaskCursor | None) -> list[Task]:
        raise NotImplementedError

    def is_eligible(self, task: Task, now_ts: float) -> bool:
        raise NotImplementedError

    def build_event(self, task: Task, now_ts: float) -> NotificationEvent:
        raise NotImplementedError

    def build_notifications(self, task: Task, now_ts: float) -> Recipients:
        return [(task.assigned_to, self.build_event(task, now_ts))]

    async def run_once(self, now_ts: float | None = None) -> ScanReport:
        """
        One scan.

        - query candidates page by page until a short page comes back
          (a failing query is logged; the report says so)
        - for each task: re-read, re-check, dispatch
        - a task that fails is logged and counted; the scan moves on
        - yields to the loop between tasks; no lock is held across the batch
        """
        if now_ts is None:
            now_ts = self._clock()

        report = ScanReport(scanner=self.kind, started_at=now_ts)
        after: TaskCursor | None = None

        while True:
            try:
                page = self.query(now_ts, after)
            except Exception:
                logger.exception("%s scan query failed (page %d)", self.kind.value, report.pages + 1)
                report.query_failed = True
                break

            report.pages += 1
            report.candidates += len(page)

            for task in page:
                try:
                    sent = self._process(task, now_ts)
                    if sent:
                        report.dispatched += 1
                        report.escalations += sent - 1
                    else:
                        report.skipped += 1
                except Exception as e:
                    failure = ScanFailure(self.kind.value, task.id)
                    logger.error("%s", failure, exc_info=e)
                    report.failed += 1

                await asyncio.sleep(self._item_delay)

            if len(page) < self._batch_limit:
                break
            last = page[-1]
            after = (float(last.due_at), last.id)

        report.finished_at = self._clock()
        logger.info(
            "%s scan done pages=%d candidates=%d dispatched=%d escalations=%d skipped=%d failed=%d",
            self.kind.value,
            report.pages,
            report.candidates,
            report.dispatched,
            report.escalations,
            report.skipped,
            report.failed,
        )
        return report

    def _process(self, task: Task, now_ts: float) -> int:
        """Return how many recipients were notified (0 when the task is no longer eligible)."""
        fresh = self._store.get_task(task.id)
        if fresh is None or not self.is_eligible(fresh, now_ts):
            logger.debug("%s scan: task %s no longer eligible", self.kind.value, task.id)
            return 0

        recipients = self.build_notifications(fresh, now_ts)
        for user_id, event in recipients:
            self._notifier.dispatch(user_id, event)
        return len(recipients)

    @staticmethod
    def _is_open(task: Task) -> bool:
        return not task.is_deleted and not is_terminal(task.status) and task.due_at is not None


class OverdueScanner(TaskScanner):
    kind = ScanKind.OVERDUE

    def __init__(
        self,
        store: TaskRepo,
        notifier: Notifier,
        *,
        users: UserDirectory | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(store, notifier, **kwargs)
        self._users = users

    def query(self, now_ts: float, after: TaskCursor | None) -> list[Task]:
        return self._store.query_overdue(now_ts, limit=self._batch_limit, after=after)

    def is_eligible(self, task: Task, now_ts: float) -> bool:
        return self._is_open(task) and task.due_at < now_ts

    def build_event(self, task: Task, now_ts: float) -> NotificationEvent:
        return OverdueTaskEvent(
            task_id=task.id,
            title=task.title,
            subject_user_id=task.assigned_to,
            actor=SYSTEM_ACTOR,
            days_overdue=days_overdue(task.due_at, now_ts),
            due_at=task.due_at,
        )

    def build_notifications(self, task: Task, now_ts: float) -> Recipients:
        out = super().build_notifications(task, now_ts)
        if self._users is None:
            return out

        days = days_overdue(task.due_at, now_ts)
        if days <= MANAGER_ESCALATION_DAYS:
            return out

        employee = self._employee(task.assigned_to)
        common = {
            "task_id": task.id,
            "title": task.title,
            "actor": SYSTEM_ACTOR,
            "days_overdue": days,
            "due_at": task.due_at,
            "employee": employee,
        }

        manager_id = self._users.manager_of(task.assigned_to)
        if manager_id and manager_id != task.assigned_to:
            out.append(
                (manager_id, OverdueEscalationEvent(subject_user_id=manager_id, **common))
            )

        if days > HR_ESCALATION_DAYS:
            for contact in self._users.escalation_contacts():
                if contact == task.assigned_to:
                    continue
                out.append((contact, CriticalOverdueEvent(subject_user_id=contact, **common)))

        return out

    def _employee(self, user_id: str) -> ActorSummary:
        try:
            return self._users.resolve_user_summary(user_id)
        except Exception:
            logger.warning("User lookup failed for %s; using bare id", user_id, exc_info=True)
            return ActorSummary(id=user_id, display_name=user_id)


class DueSoonScanner(TaskScanner):
    kind = ScanKind.DUE_SOON

    def __init__(self, store: TaskRepo, notifier: Notifier, *, window_seconds: float, **kwargs: Any) -> None:
        super().__init__(store, notifier, **kwargs)
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._window = float(window_seconds)

    @property
    def window_seconds(self) -> float:
        return self._window

    def query(self, now_ts: float, after: TaskCursor | None) -> list[Task]:
        return self._store.query_due_soon(
            now_ts, self._window, limit=self._batch_limit, after=after
        )

    def is_eligible(self, task: Task, now_ts: float) -> bool:
        return self._is_open(task) and now_ts <= task.due_at <= now_ts + self._window

    def build_event(self, task: Task, now_ts: float) -> NotificationEvent:
        return DueSoonEvent(
            task_id=task.id,
            title=task.title,
            subject_user_id=task.assigned_to,
            actor=SYSTEM_ACTOR,
            days_until_due=days_until_due(task.due_at, now_ts),
            due_at=task.due_at,
        )


@dataclass(slots=True)
class ScanScheduler:
    """
    Timer for one scanner.

    start() spawns the loop on the running event loop. stop() asks the loop to
    finish: a scan in progress runs to completion, the next one never starts.
    """

    scanner: TaskScanner
    interval_seconds: float
    run_immediately: bool = True

    last_report: ScanReport | None = None
    runs: int = 0
    _task: asyncio.Task[None] | None = field(default=None, repr=False)
    _stop: asyncio.Event | None = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.scanner.kind.value

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"scan-{self.name}"
        )
        logger.info("%s scheduler started interval=%.1fs", self.name, self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        if self._stop is not None:
            self._stop.set()
        try:
            await self._task
        finally:
            self._task = None
        logger.info("%s scheduler stopped after %d run(s)", self.name, self.runs)

    async def run_once(self, now_ts: float | None = None) -> ScanReport:
        report = await self.scanner.run_once(now_ts)
        self.last_report = report
        self.runs += 1
        return report

    async def _run(self) -> None:
        assert self._stop is not None
        sleep_s = max(0.5, float(self.interval_seconds))

        if not self.run_immediately:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=sleep_s)

        while not self._stop.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("%s scan crashed", self.name)

            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=sleep_s)

    def status(self) -> dict[str, Any]:
        return {
            "scanner": self.name,
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }


class ScannerBackgroundRunner:
    """
    Run schedulers in a background thread with their own event loop
    (the console REPL blocks the main thread on input()).
    """

    def __init__(self, schedulers: list[ScanScheduler]) -> None:
        self._schedulers = schedulers
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._ready = threading.Event()
        self._thread = threading.Thread(target=self._thread_main, name="scanners", daemon=True)

    @property
    def schedulers(self) -> list[ScanScheduler]:
        return list(self._schedulers)

    def start(self) -> None:
        self._thread.start()
        if not self._ready.wait(timeout=5.0):
            logger.error("Scanner thread did not initialize properly.")
            return
        logger.info("Scanner background thread started (%d job(s)).", len(self._schedulers))

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._serve())
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    async def _serve(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        for sched in self._schedulers:
            sched.start()
        self._ready.set()

        await self._stop_event.wait()

        # Drain: every scheduler finishes its current scan before we return.
        for sched in self._schedulers:
            try:
                await sched.stop()
            except Exception:
                logger.exception("Stopping %s scheduler failed", sched.name)

    def trigger(self, name: str, *, timeout: float = 60.0) -> ScanReport:
        """Run one scan of the named scheduler now, on the scanner loop, and wait for it."""
        sched = next((s for s in self._schedulers if s.name == name), None)
        if sched is None:
            raise KeyError(name)
        if self._loop is None:
            raise RuntimeError("scanner loop is not running")
        fut = asyncio.run_coroutine_threadsafe(sched.run_once(), self._loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        if self._loop is None or self._stop_event is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._stop_event.set)
        except RuntimeError:
            logger.debug("Scanner loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout=timeout)
