# tests/test_preference_store.py

from __future__ import annotations

import pytest

from taskpulse.notifications.events import NotificationCategory
from taskpulse.notifications.preference_store import PreferenceStore, QuietHours, parse_hhmm


def test_fresh_user_has_no_explicit_choices(preference_store: PreferenceStore) -> None:
    assert preference_store.get_preferences("u1") == {}


def test_set_preference_upserts(preference_store: PreferenceStore) -> None:
    preference_store.set_preference("u1", NotificationCategory.DUE_DATE_REMINDERS, False)
    assert preference_store.get_preferences("u1") == {"due_date_reminders": False}

    preference_store.set_preference("u1", "due_date_reminders", True)
    assert preference_store.get_preferences("u1") == {"due_date_reminders": True}


def test_preferences_are_isolated_per_user(preference_store: PreferenceStore) -> None:
    preference_store.set_preference("u1", NotificationCategory.TASK_ASSIGNMENTS, False)

    assert preference_store.get_preferences("u2") == {}


def test_reset_drops_all_choices(preference_store: PreferenceStore) -> None:
    preference_store.set_preference("u1", NotificationCategory.TASK_ASSIGNMENTS, False)
    preference_store.set_preference("u1", NotificationCategory.PRIORITY_CHANGES, False)
    preference_store.set_quiet_hours("u1", "22:00", "07:00")

    preference_store.reset_preferences("u1")

    assert preference_store.get_preferences("u1") == {}
    assert preference_store.get_quiet_hours("u1") is None


def test_unknown_category_is_rejected(preference_store: PreferenceStore) -> None:
    with pytest.raises(ValueError):
        preference_store.set_preference("u1", "birthdays", False)


def test_choices_survive_reopen(settings, preference_store: PreferenceStore) -> None:
    preference_store.set_preference("u1", NotificationCategory.TASK_STATUS_CHANGES, False)

    reopened = PreferenceStore(settings.preferences_db_path)

    assert reopened.get_preferences("u1") == {"task_status_changes": False}


def test_quiet_hours_roundtrip(preference_store: PreferenceStore) -> None:
    assert preference_store.get_quiet_hours("u1") is None

    stored = preference_store.set_quiet_hours("u1", "22:30", "6:15")

    assert stored == QuietHours(start="22:30", end="06:15")
    assert preference_store.get_quiet_hours("u1") == stored
    assert preference_store.get_quiet_hours("u2") is None

    preference_store.set_quiet_hours("u1", "12:00", "13:00", enabled=False)
    assert preference_store.get_quiet_hours("u1") == QuietHours("12:00", "13:00", enabled=False)

    preference_store.clear_quiet_hours("u1")
    assert preference_store.get_quiet_hours("u1") is None


@pytest.mark.parametrize("raw", ["", "7", "24:00", "12:60", "noon", "1230"])
def test_bad_quiet_hours_are_rejected(preference_store: PreferenceStore, raw: str) -> None:
    with pytest.raises(ValueError):
        preference_store.set_quiet_hours("u1", raw, "07:00")
    assert preference_store.get_quiet_hours("u1") is None


def test_parse_hhmm_pads_single_digit_hours() -> None:
    assert parse_hhmm(" 9:05 ") == "09:05"
    assert parse_hhmm("23:59") == "23:59"


@pytest.mark.parametrize(
    "now,inside",
    [("08:59", False), ("09:00", True), ("12:30", True), ("17:00", True), ("17:01", False)],
)
def test_same_day_window_is_inclusive(now: str, inside: bool) -> None:
    assert QuietHours("09:00", "17:00").contains(now) is inside


@pytest.mark.parametrize(
    "now,inside",
    [
        ("21:59", False),
        ("22:00", True),
        ("23:59", True),
        ("00:00", True),
        ("07:00", True),
        ("07:01", False),
        ("12:00", False),
    ],
)
def test_window_wrapping_midnight(now: str, inside: bool) -> None:
    assert QuietHours("22:00", "07:00").contains(now) is inside


def test_disabled_window_never_matches() -> None:
    assert not QuietHours("00:00", "23:59", enabled=False).contains("12:00")
