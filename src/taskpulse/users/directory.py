# src/taskpulse/users/directory.py

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping

from ..notifications.events import ActorSummary

logger = logging.getLogger(__name__)


class StaticUserDirectory:
    """
    In-process user directory.

    The HR backend owns user records; this keeps what notifications need:
    display names for payloads, each employee's manager, and the HR/admin
    contacts that overdue escalations go to. Unknown ids resolve to themselves.
    """

    def __init__(
        self,
        names: Mapping[str, str] | None = None,
        *,
        managers: Mapping[str, str] | None = None,
        hr_contacts: Iterable[str] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._names: dict[str, str] = dict(names or {})
        self._managers: dict[str, str] = dict(managers or {})
        self._hr_contacts: list[str] = list(dict.fromkeys(c for c in hr_contacts if c))

    def set_display_name(self, user_id: str, display_name: str) -> None:
        with self._lock:
            self._names[user_id] = display_name

    def set_manager(self, user_id: str, manager_id: str | None) -> None:
        with self._lock:
            if manager_id:
                self._managers[user_id] = manager_id
            else:
                self._managers.pop(user_id, None)

    def resolve_user_summary(self, user_id: str) -> ActorSummary:
        with self._lock:
            name = self._names.get(user_id)
        if not name:
            logger.debug("No display name for user=%s; using id", user_id)
            name = user_id
        return ActorSummary(id=user_id, display_name=name)

    def manager_of(self, user_id: str) -> str | None:
        with self._lock:
            return self._managers.get(user_id)

    def escalation_contacts(self) -> list[str]:
        with self._lock:
            return list(self._hr_contacts)
