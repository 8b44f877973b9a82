# src/taskpulse/notifications/dispatcher.py

from __future__ import annotations

"""
Notification dispatcher.

Turns a NotificationEvent into a payload for one user:
- resolve the event's preference category (explicit table in events.py)
- drop it if the user switched that category off, or is inside their quiet hours
- push it to the user's live sessions through the connection registry
- for due-date reminders nobody saw live, hand it to the secondary channel

Delivery is best-effort and at-most-once. dispatch() never raises: whatever
goes wrong is logged here and the caller (a task mutation or a scan) carries on.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, tzinfo
from typing import Final

from ..core.errors import NotificationDeliveryError
from ..core.ports import Payload, PreferenceRepo, SecondaryChannel
from ..realtime.registry import ConnectionRegistry
from .events import NotificationEvent, NotificationKind, category_for

logger = logging.getLogger(__name__)

# Kinds that may leave the live channel when the user has no open session.
SECONDARY_CHANNEL_KINDS: Final[frozenset[NotificationKind]] = frozenset({NotificationKind.DUE_SOON})


class NotificationDispatcher:
    def __init__(
        self,
        registry: ConnectionRegistry,
        preferences: PreferenceRepo,
        *,
        secondary_channel: SecondaryChannel | None = None,
        clock: Callable[[], float] = time.time,
        tz: tzinfo | None = None,
    ) -> None:
        self._registry = registry
        self._preferences = preferences
        self._secondary = secondary_channel
        self._clock = clock
        # Quiet hours are wall-clock times; None means the host timezone.
        self._tz = tz

    def should_send_notification(self, user_id: str, kind: NotificationKind | str) -> bool:
        """
        True if user_id has not switched off the category of `kind` and is
        not inside their quiet hours right now.

        A failing preference lookup is logged and counts as enabled.
        """
        category = category_for(kind)
        try:
            prefs = self._preferences.get_preferences(user_id)
        except Exception:
            logger.warning(
                "Preference lookup failed user=%s category=%s; defaulting to enabled",
                user_id,
                category.value,
                exc_info=True,
            )
            return True
        if not prefs.get(category.value, True):
            return False
        return not self._in_quiet_hours(user_id)

    def _in_quiet_hours(self, user_id: str) -> bool:
        try:
            quiet = self._preferences.get_quiet_hours(user_id)
        except Exception:
            logger.warning("Quiet hours lookup failed user=%s; ignoring", user_id, exc_info=True)
            return False
        if quiet is None or not quiet.enabled:
            return False
        now_hm = datetime.fromtimestamp(self._clock(), self._tz).strftime("%H:%M")
        if quiet.contains(now_hm):
            logger.debug(
                "Quiet hours %s-%s active for user=%s at %s", quiet.start, quiet.end, user_id, now_hm
            )
            return True
        return False

    def build_payload(self, event: NotificationEvent) -> Payload:
        payload: Payload = {
            "kind": event.kind.value,
            "taskId": event.task_id,
            "title": event.title,
            "timestamp": datetime.fromtimestamp(self._clock(), UTC).isoformat(),
            "actor": event.actor.to_payload(),
        }
        payload.update(event.extra_fields())
        return payload

    def dispatch(self, user_id: str, event: NotificationEvent) -> int:
        """Deliver event to user_id's live sessions. Returns the number of sessions reached."""
        try:
            if not self.should_send_notification(user_id, event.kind):
                logger.debug(
                    "Skipping %s for user=%s task=%s (preference off or quiet hours)",
                    event.kind.value,
                    user_id,
                    event.task_id,
                )
                return 0

            payload = self.build_payload(event)
            delivered = self._registry.send_to_user(user_id, payload)

            if delivered == 0 and event.kind in SECONDARY_CHANNEL_KINDS:
                self._deliver_secondary(user_id, payload)

            logger.debug(
                "Dispatched %s task=%s user=%s sessions=%d",
                event.kind.value,
                event.task_id,
                user_id,
                delivered,
            )
            return delivered
        except NotificationDeliveryError:
            logger.warning(
                "Delivery of %s to user=%s failed", event.kind.value, user_id, exc_info=True
            )
            return 0
        except Exception:
            logger.exception("dispatch failed user=%s kind=%s", user_id, getattr(event, "kind", "?"))
            return 0

    def _deliver_secondary(self, user_id: str, payload: Payload) -> None:
        if self._secondary is None:
            return
        try:
            self._secondary.deliver(user_id, payload)
        except Exception as e:
            raise NotificationDeliveryError(
                f"secondary channel rejected {payload.get('kind')} for {user_id}"
            ) from e
        logger.info("Handed %s for user=%s to secondary channel", payload.get("kind"), user_id)
