# src/taskpulse/tasks/task_lifecycle.py

from __future__ import annotations

"""
Task lifecycle.

Owns task creation (single and bulk), status changes and comment notices:
- validates input before anything is written
- enforces the status rules (task_rules)
- persists through the TaskRepo port
- decides who hears about the change and hands the events to the notifier

Persisting and notifying are not one transaction. Once the
store accepted the mutation, the call succeeds; notification problems are
logged and dropped.
"""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Executor
from dataclasses import dataclass

from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..core.ports import Notifier, TaskRepo, UserDirectory
from ..notifications.events import (
    ActorSummary,
    BulkTaskAssignmentEvent,
    NotificationEvent,
    TaskAssignmentEvent,
    TaskCommentEvent,
    TaskCompletionEvent,
    TaskPriorityChangeEvent,
    TaskStatusChangeEvent,
)
from .task_models import (
    Task,
    TaskPatch,
    TaskPriority,
    TaskSpec,
    TaskStatus,
    parse_due_date,
    parse_priority,
    parse_status,
)
from .task_rules import ensure_transition

logger = logging.getLogger(__name__)

_UPDATE_ATTEMPTS = 3
COMMENT_EXCERPT_LIMIT = 100


def comment_excerpt(text: str, limit: int = COMMENT_EXCERPT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@dataclass(slots=True, frozen=True)
class _ValidatedPatch:
    status: TaskStatus | None
    title: str | None
    description: str | None
    priority: TaskPriority | None
    due_at: float | None
    touches_due_date: bool


class TaskLifecycleManager:
    def __init__(
        self,
        store: TaskRepo,
        notifier: Notifier,
        users: UserDirectory,
        *,
        executor: Executor | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._users = users
        self._executor = executor

    # ---- create ----

    def create_task(self, spec: TaskSpec, actor_id: str) -> Task:
        if not actor_id:
            raise ValidationError("actor_id is required")

        title = (spec.title or "").strip()
        if not title:
            raise ValidationError("title is required")

        due_at = parse_due_date(spec.due_date)
        priority = parse_priority(spec.priority)
        assigned_to = (spec.assigned_to or "").strip() or actor_id

        task = self._store.add_task(
            title=title,
            description=spec.description or "",
            assigned_to=assigned_to,
            assigned_by=actor_id,
            priority=priority,
            due_at=due_at,
            status=TaskStatus.TODO,
        )
        logger.info(
            "Task created id=%s assigned_to=%s assigned_by=%s", task.id, assigned_to, actor_id
        )

        if task.assigned_to != actor_id:
            self._notify(
                lambda actor: [
                    (
                        task.assigned_to,
                        TaskAssignmentEvent(
                            task_id=task.id,
                            title=task.title,
                            subject_user_id=task.assigned_to,
                            actor=actor,
                            priority=task.priority.value,
                            due_at=task.due_at,
                        ),
                    )
                ],
                actor_id,
            )
        return task

    def create_tasks_bulk(self, spec: TaskSpec, assignees: Iterable[str], actor_id: str) -> list[Task]:
        """
        Create one copy of `spec` per assignee (duplicates collapsed, order kept).

        Everything is validated before the first insert. Each assignee other
        than the actor gets a bulk assignment notification carrying the batch size.
        """
        if not actor_id:
            raise ValidationError("actor_id is required")

        title = (spec.title or "").strip()
        if not title:
            raise ValidationError("title is required")

        targets = list(dict.fromkeys(a.strip() for a in assignees if a and a.strip()))
        if not targets:
            raise ValidationError("at least one assignee is required")

        due_at = parse_due_date(spec.due_date)
        priority = parse_priority(spec.priority)

        tasks = [
            self._store.add_task(
                title=title,
                description=spec.description or "",
                assigned_to=assignee,
                assigned_by=actor_id,
                priority=priority,
                due_at=due_at,
                status=TaskStatus.TODO,
            )
            for assignee in targets
        ]
        logger.info(
            "Bulk created %d task(s) ids=%s assigned_by=%s",
            len(tasks),
            ",".join(str(t.id) for t in tasks),
            actor_id,
        )

        batch_size = len(tasks)
        self._notify(
            lambda actor: [
                (
                    task.assigned_to,
                    BulkTaskAssignmentEvent(
                        task_id=task.id,
                        title=task.title,
                        subject_user_id=task.assigned_to,
                        actor=actor,
                        priority=task.priority.value,
                        due_at=task.due_at,
                        batch_size=batch_size,
                    ),
                )
                for task in tasks
                if task.assigned_to != actor_id
            ],
            actor_id,
        )
        return tasks

    # ---- update ----

    def update_task(self, task_id: int, patch: TaskPatch, actor_id: str) -> Task:
        if not actor_id:
            raise ValidationError("actor_id is required")

        current = self._load(task_id)
        fields = self._validate_patch(patch)

        for _attempt in range(_UPDATE_ATTEMPTS):
            new_status: TaskStatus | None = None
            if fields.status is not None and fields.status != current.status:
                ensure_transition(current.status, fields.status)
                new_status = fields.status

            update_kwargs = {
                "expected_status": current.status,
                "status": new_status,
                "title": fields.title,
                "description": fields.description,
                "priority": fields.priority,
            }
            if fields.touches_due_date:
                update_kwargs["due_at"] = fields.due_at

            if self._store.update_task(task_id, **update_kwargs):
                break

            # Lost a race (or the task was deleted meanwhile): re-read and re-validate.
            logger.info("Task %s changed during update; retrying", task_id)
            current = self._load(task_id)
        else:
            raise ConflictError(f"Task {task_id} kept changing; update abandoned")

        updated = self._load(task_id)
        old_status = current.status
        old_priority = current.priority

        logger.info(
            "Task updated id=%s actor=%s status=%s->%s",
            task_id,
            actor_id,
            old_status.value,
            updated.status.value,
        )

        status_changed = new_status is not None
        priority_changed = fields.priority is not None and fields.priority != old_priority
        if status_changed or priority_changed:
            self._notify(
                lambda actor: self._update_events(
                    updated,
                    actor,
                    actor_id=actor_id,
                    old_status=old_status if status_changed else None,
                    old_priority=old_priority if priority_changed else None,
                ),
                actor_id,
            )
        return updated

    # ---- comments ----

    def notify_comment(self, task_id: int, actor_id: str, text: str) -> list[str]:
        """
        Tell the other parties of task_id that actor_id commented on it.

        Comments themselves are stored by the HR backend; only a short excerpt
        travels in the notification. Returns the users that were notified.
        """
        if not actor_id:
            raise ValidationError("actor_id is required")
        body = (text or "").strip()
        if not body:
            raise ValidationError("comment must not be empty")

        task = self._load(task_id)
        recipients = self._other_parties(task, actor_id)
        if not recipients:
            return []

        snippet = comment_excerpt(body)
        logger.info("Comment on task=%s by=%s -> %s", task_id, actor_id, ",".join(recipients))
        self._notify(
            lambda actor: [
                (
                    user_id,
                    TaskCommentEvent(
                        task_id=task.id,
                        title=task.title,
                        subject_user_id=user_id,
                        actor=actor,
                        excerpt=snippet,
                    ),
                )
                for user_id in recipients
            ],
            actor_id,
        )
        return recipients

    def _load(self, task_id: int) -> Task:
        task = self._store.get_task(task_id)
        if task is None or task.is_deleted:
            raise NotFoundError(task_id)
        return task

    @staticmethod
    def _validate_patch(patch: TaskPatch) -> _ValidatedPatch:
        title = None
        if patch.title is not None:
            title = patch.title.strip()
            if not title:
                raise ValidationError("title must not be empty")

        return _ValidatedPatch(
            status=parse_status(patch.status) if patch.status is not None else None,
            title=title,
            description=patch.description,
            priority=parse_priority(patch.priority) if patch.priority is not None else None,
            due_at=parse_due_date(patch.due_date) if patch.due_date is not None else None,
            touches_due_date=patch.due_date is not None,
        )

    # ---- notification policy ----

    @staticmethod
    def _other_parties(task: Task, actor_id: str) -> list[str]:
        """Assignee and assigner, minus whoever acted. Never notify someone about their own action."""
        out: list[str] = []
        for user_id in (task.assigned_to, task.assigned_by):
            if user_id and user_id != actor_id and user_id not in out:
                out.append(user_id)
        return out

    def _update_events(
        self,
        task: Task,
        actor: ActorSummary,
        *,
        actor_id: str,
        old_status: TaskStatus | None,
        old_priority: TaskPriority | None,
    ) -> list[tuple[str, NotificationEvent]]:
        events: list[tuple[str, NotificationEvent]] = []
        recipients = self._other_parties(task, actor_id)

        if old_status is not None:
            for user_id in recipients:
                events.append(
                    (
                        user_id,
                        TaskStatusChangeEvent(
                            task_id=task.id,
                            title=task.title,
                            subject_user_id=user_id,
                            actor=actor,
                            old_status=old_status.value,
                            new_status=task.status.value,
                        ),
                    )
                )

            if (
                task.status == TaskStatus.COMPLETED
                and actor_id == task.assigned_to
                and task.assigned_by != actor_id
            ):
                events.append(
                    (
                        task.assigned_by,
                        TaskCompletionEvent(
                            task_id=task.id,
                            title=task.title,
                            subject_user_id=task.assigned_by,
                            actor=actor,
                            completed_at=task.completed_at or task.updated_at,
                        ),
                    )
                )

        if old_priority is not None:
            for user_id in recipients:
                events.append(
                    (
                        user_id,
                        TaskPriorityChangeEvent(
                            task_id=task.id,
                            title=task.title,
                            subject_user_id=user_id,
                            actor=actor,
                            old_priority=old_priority.value,
                            new_priority=task.priority.value,
                        ),
                    )
                )

        return events

    def _notify(
        self,
        build: Callable[[ActorSummary], list[tuple[str, NotificationEvent]]],
        actor_id: str,
    ) -> None:
        """
        Build and dispatch events off the caller's path.

        `build(actor_summary)` returns (user_id, event) pairs. With an executor
        the whole job runs there; without one it runs inline. Either way no
        exception reaches the task mutation caller.
        """
        def job() -> None:
            try:
                actor = self._resolve_actor(actor_id)
                self._dispatch_all(build(actor))
            except Exception:
                logger.exception("Task notification job failed actor=%s", actor_id)

        if self._executor is None:
            job()
            return

        try:
            self._executor.submit(job)
        except Exception:
            # Executor already shut down (process exiting): drop the notification.
            logger.warning("Notification executor rejected job actor=%s", actor_id, exc_info=True)

    def _dispatch_all(self, pairs: Iterable[tuple[str, NotificationEvent]]) -> None:
        for user_id, event in pairs:
            self._notifier.dispatch(user_id, event)

    def _resolve_actor(self, actor_id: str) -> ActorSummary:
        try:
            return self._users.resolve_user_summary(actor_id)
        except Exception:
            logger.warning("User lookup failed for %s; using bare id", actor_id, exc_info=True)
            return ActorSummary(id=actor_id, display_name=actor_id)
