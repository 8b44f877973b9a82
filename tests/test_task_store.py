# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from taskpulse.tasks.task_models import TaskPriority, TaskStatus
from taskpulse.tasks.task_store import TaskStore

NOW = 1_700_000_000.0
DAY = 86400.0


def _add(store: TaskStore, *, due_at: float | None = None, title: str = "t", **kw):
    return store.add_task(
        title=title, assigned_to=kw.pop("assigned_to", "u2"), assigned_by="u1", due_at=due_at, **kw
    )


def test_add_and_get_roundtrip(task_store: TaskStore) -> None:
    task = _add(task_store, title="  Write report ", description=" Q3 ", priority=TaskPriority.HIGH)

    got = task_store.get_task(task.id)
    assert got == task
    assert got.title == "Write report"
    assert got.description == "Q3"
    assert got.status == TaskStatus.TODO
    assert got.priority == TaskPriority.HIGH
    assert got.completed_at is None
    assert task_store.count_tasks() == 1


def test_add_requires_title(task_store: TaskStore) -> None:
    with pytest.raises(ValueError):
        _add(task_store, title=" ")


def test_conditional_update_checks_expected_status(task_store: TaskStore) -> None:
    task = _add(task_store)

    assert not task_store.update_task(
        task.id, expected_status=TaskStatus.IN_PROGRESS, status=TaskStatus.COMPLETED
    )
    assert task_store.get_task(task.id).status == TaskStatus.TODO

    assert task_store.update_task(
        task.id, expected_status=TaskStatus.TODO, status=TaskStatus.IN_PROGRESS
    )
    assert task_store.get_task(task.id).status == TaskStatus.IN_PROGRESS


def test_completing_stamps_completed_at(task_store: TaskStore) -> None:
    task = _add(task_store)

    task_store.update_task(task.id, expected_status=TaskStatus.TODO, status=TaskStatus.COMPLETED)

    done = task_store.get_task(task.id)
    assert done.completed_at is not None
    assert done.completed_at >= task.created_at


def test_due_at_untouched_unless_given(task_store: TaskStore) -> None:
    task = _add(task_store, due_at=NOW)

    task_store.update_task(task.id, expected_status=TaskStatus.TODO, title="renamed")
    assert task_store.get_task(task.id).due_at == NOW

    task_store.update_task(task.id, expected_status=TaskStatus.TODO, due_at=None)
    assert task_store.get_task(task.id).due_at is None


def test_soft_deleted_rows_are_hidden_from_queries(task_store: TaskStore) -> None:
    task = _add(task_store, due_at=NOW - DAY)
    assert task_store.soft_delete_task(task.id)
    assert not task_store.soft_delete_task(task.id)

    assert task_store.get_task(task.id).is_deleted
    assert task_store.query_overdue(NOW) == []
    assert task_store.count_tasks() == 0
    assert not task_store.update_task(
        task.id, expected_status=TaskStatus.TODO, status=TaskStatus.COMPLETED
    )


def test_query_overdue_only_open_and_past_due(task_store: TaskStore) -> None:
    late = _add(task_store, due_at=NOW - DAY, title="late")
    _add(task_store, due_at=NOW + DAY, title="future")
    _add(task_store, due_at=None, title="undated")
    done = _add(task_store, due_at=NOW - DAY, title="done")
    task_store.update_task(done.id, expected_status=TaskStatus.TODO, status=TaskStatus.COMPLETED)
    later_late = _add(task_store, due_at=NOW - 2 * DAY, title="later late")

    got = task_store.query_overdue(NOW)

    assert [t.id for t in got] == [later_late.id, late.id]


def test_query_due_soon_window_is_inclusive(task_store: TaskStore) -> None:
    edge = _add(task_store, due_at=NOW + 3 * DAY, title="edge")
    inside = _add(task_store, due_at=NOW + DAY, title="inside")
    _add(task_store, due_at=NOW + 3 * DAY + 1, title="outside")
    _add(task_store, due_at=NOW - 1, title="already late")

    got = task_store.query_due_soon(NOW, 3 * DAY)

    assert [t.id for t in got] == [inside.id, edge.id]


def test_query_limit(task_store: TaskStore) -> None:
    for i in range(5):
        _add(task_store, due_at=NOW - DAY - i)
    assert len(task_store.query_overdue(NOW, limit=3)) == 3


def test_query_overdue_resumes_after_cursor(task_store: TaskStore) -> None:
    a = _add(task_store, due_at=NOW - 2 * DAY)
    b = _add(task_store, due_at=NOW - DAY)
    c = _add(task_store, due_at=NOW - DAY)
    d = _add(task_store, due_at=NOW - 1)

    first = task_store.query_overdue(NOW, limit=2)
    rest = task_store.query_overdue(NOW, limit=2, after=(first[-1].due_at, first[-1].id))

    assert [t.id for t in first] == [a.id, b.id]
    assert [t.id for t in rest] == [c.id, d.id]
    assert task_store.query_overdue(NOW, limit=2, after=(d.due_at, d.id)) == []


def test_query_due_soon_resumes_after_cursor(task_store: TaskStore) -> None:
    early = _add(task_store, due_at=NOW + 3600)
    late = _add(task_store, due_at=NOW + DAY)

    got = task_store.query_due_soon(NOW, 3 * DAY, limit=1, after=(early.due_at, early.id))

    assert [t.id for t in got] == [late.id]


def test_list_open_tasks_for_user(task_store: TaskStore) -> None:
    mine = _add(task_store, assigned_to="u2")
    _add(task_store, assigned_to="u3")

    assert [t.id for t in task_store.list_open_tasks_for_user("u2")] == [mine.id]
    assert len(task_store.list_open_tasks_for_user("u1")) == 2
    assert task_store.list_open_tasks_for_user("") == []


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        """
        CREATE TABLE tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            assigned_to TEXT NOT NULL,
            assigned_by TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'todo',
            created_at REAL NOT NULL,
            updated_at REAL NOT NULL
        )
        """
    )
    conn.execute(
        "INSERT INTO tasks(title, assigned_to, assigned_by, created_at, updated_at) "
        "VALUES ('legacy', 'u2', 'u1', 1, 1)"
    )
    conn.commit()
    conn.close()

    store = TaskStore(db)
    legacy = store.get_task(1)

    assert legacy.title == "legacy"
    assert legacy.priority == TaskPriority.MEDIUM
    assert legacy.due_at is None
    assert legacy.deleted_at is None
