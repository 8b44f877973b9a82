# tests/test_events.py

from __future__ import annotations

import pytest

from taskpulse.notifications.events import (
    SYSTEM_ACTOR,
    ActorSummary,
    BulkTaskAssignmentEvent,
    CriticalOverdueEvent,
    DueSoonEvent,
    NotificationCategory,
    NotificationKind,
    OverdueEscalationEvent,
    OverdueTaskEvent,
    TaskCommentEvent,
    TaskCompletionEvent,
    TaskStatusChangeEvent,
    category_for,
)

ACTOR = ActorSummary(id="u1", display_name="Alice")


def test_status_change_requires_different_statuses() -> None:
    with pytest.raises(ValueError):
        TaskStatusChangeEvent(
            task_id=1,
            title="t",
            subject_user_id="u2",
            actor=ACTOR,
            old_status="todo",
            new_status="todo",
        )


@pytest.mark.parametrize("task_id", [0, -3, True, "1"])
def test_task_id_must_be_positive_int(task_id) -> None:
    with pytest.raises(ValueError):
        TaskCompletionEvent(
            task_id=task_id, title="t", subject_user_id="u2", actor=ACTOR, completed_at=1.0
        )


def test_subject_user_is_required() -> None:
    with pytest.raises(ValueError):
        OverdueTaskEvent(
            task_id=1, title="t", subject_user_id="", actor=SYSTEM_ACTOR, days_overdue=1, due_at=0.0
        )


def test_negative_day_counts_are_rejected() -> None:
    with pytest.raises(ValueError):
        DueSoonEvent(
            task_id=1,
            title="t",
            subject_user_id="u2",
            actor=SYSTEM_ACTOR,
            days_until_due=-1,
            due_at=0.0,
        )


def test_events_are_immutable() -> None:
    ev = OverdueTaskEvent(
        task_id=1, title="t", subject_user_id="u2", actor=SYSTEM_ACTOR, days_overdue=2, due_at=0.0
    )
    with pytest.raises(AttributeError):
        ev.days_overdue = 3  # type: ignore[misc]


def test_overdue_extra_fields() -> None:
    ev = OverdueTaskEvent(
        task_id=1, title="t", subject_user_id="u2", actor=SYSTEM_ACTOR, days_overdue=2, due_at=0.0
    )
    assert ev.kind == NotificationKind.OVERDUE_TASK
    assert ev.extra_fields() == {"daysOverdue": 2, "dueAt": "1970-01-01T00:00:00+00:00"}


def test_every_kind_has_a_category() -> None:
    for kind in NotificationKind:
        assert isinstance(category_for(kind), NotificationCategory)


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(ValueError):
        category_for("birthday")


def test_escalation_payload_carries_the_employee() -> None:
    ev = OverdueEscalationEvent(
        task_id=4,
        title="Payroll",
        subject_user_id="m1",
        actor=SYSTEM_ACTOR,
        days_overdue=2,
        due_at=0.0,
        employee=ActorSummary(id="u2", display_name="Bob"),
    )
    assert category_for(ev.kind) == NotificationCategory.ESCALATIONS
    assert ev.extra_fields() == {
        "daysOverdue": 2,
        "dueAt": "1970-01-01T00:00:00+00:00",
        "employee": {"id": "u2", "displayName": "Bob"},
    }


def test_escalation_cannot_go_to_the_employee() -> None:
    with pytest.raises(ValueError):
        CriticalOverdueEvent(
            task_id=4,
            title="Payroll",
            subject_user_id="u2",
            actor=SYSTEM_ACTOR,
            days_overdue=5,
            due_at=0.0,
            employee=ActorSummary(id="u2", display_name="Bob"),
        )


def test_comment_needs_an_excerpt() -> None:
    with pytest.raises(ValueError):
        TaskCommentEvent(task_id=1, title="t", subject_user_id="u2", actor=ACTOR, excerpt="")


@pytest.mark.parametrize("batch_size", [0, -1])
def test_bulk_batch_size_must_be_positive(batch_size: int) -> None:
    with pytest.raises(ValueError):
        BulkTaskAssignmentEvent(
            task_id=1,
            title="t",
            subject_user_id="u2",
            actor=ACTOR,
            priority="low",
            batch_size=batch_size,
        )


def test_new_kinds_have_their_own_categories() -> None:
    assert category_for("task_comment") == NotificationCategory.TASK_COMMENTS
    assert category_for("bulk_task_assignment") == NotificationCategory.BULK_ASSIGNMENTS
    assert category_for("critical_overdue") == NotificationCategory.ESCALATIONS
