# tests/test_task_models.py

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from taskpulse.core.errors import ValidationError
from taskpulse.tasks.task_models import (
    SECONDS_PER_DAY,
    TaskPriority,
    TaskStatus,
    days_overdue,
    days_until_due,
    parse_due_date,
    parse_priority,
    parse_status,
)

NOON = datetime(2025, 3, 1, 12, 0, tzinfo=UTC).timestamp()


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, None),
        ("", None),
        (1_700_000_000, 1_700_000_000.0),
        ("2025-03-01", datetime(2025, 3, 1, tzinfo=UTC).timestamp()),
        ("2025-03-01T12:00:00Z", NOON),
        ("2025-03-01T14:00:00+02:00", NOON),
        (date(2025, 3, 1), datetime(2025, 3, 1, tzinfo=UTC).timestamp()),
        (datetime(2025, 3, 1, 12, 0), NOON),
        (datetime(2025, 3, 1, 13, 0, tzinfo=timezone(timedelta(hours=1))), NOON),
    ],
)
def test_parse_due_date(raw, expected) -> None:
    assert parse_due_date(raw) == expected


@pytest.mark.parametrize("raw", ["tomorrow", "2025-13-01", True, float("nan"), ["2025-03-01"]])
def test_parse_due_date_rejects_garbage(raw) -> None:
    with pytest.raises(ValidationError):
        parse_due_date(raw)


def test_parse_priority_and_status_are_case_insensitive() -> None:
    assert parse_priority(" HIGH ") == TaskPriority.HIGH
    assert parse_status("In_Progress") == TaskStatus.IN_PROGRESS
    with pytest.raises(ValidationError):
        parse_priority("p0")
    with pytest.raises(ValidationError):
        parse_status("done")


def test_days_overdue_floors() -> None:
    assert days_overdue(NOON, NOON + 2 * SECONDS_PER_DAY) == 2
    assert days_overdue(NOON, NOON + 2.9 * SECONDS_PER_DAY) == 2
    assert days_overdue(NOON, NOON + 3600) == 0
    assert days_overdue(NOON, NOON - 3600) == 0


def test_days_until_due_rounds_up() -> None:
    assert days_until_due(NOON, NOON - 3600) == 1
    assert days_until_due(NOON, NOON - 2 * SECONDS_PER_DAY) == 2
    assert days_until_due(NOON, NOON - 2.1 * SECONDS_PER_DAY) == 3
    assert days_until_due(NOON, NOON) == 0


def test_from_db_falls_back_on_unknown_values() -> None:
    assert TaskStatus.from_db("archived") == TaskStatus.TODO
    assert TaskStatus.from_db(None) == TaskStatus.TODO
    assert TaskPriority.from_db("") == TaskPriority.MEDIUM
    assert TaskStatus.IN_PROGRESS.label == "In Progress"
