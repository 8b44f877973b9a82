# src/taskpulse/realtime/registry.py

from __future__ import annotations

"""
Connection registry.

Maps a user id to the live transport sessions of that user. The transport
layer calls register/unregister on connect/disconnect; the dispatcher calls
send_to_user on every notification.

Locking:
- one lock guards both indexes; every mutation and every snapshot takes it
- sends run on a snapshot, outside the lock, so a slow handle never holds up
  register/unregister or other senders
- liveness is the transport's job: a handle whose send() fails stays
  registered until the transport reports the disconnect
"""

import logging
import threading
import time
from dataclasses import dataclass, field

from ..core.ports import ConnectionHandle, Payload

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Connection:
    user_id: str
    handle: ConnectionHandle
    connected_at: float = field(default_factory=time.time)


class ConnectionRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        # user_id -> {handle: Connection}; dicts keep connect order.
        self._by_user: dict[str, dict[ConnectionHandle, Connection]] = {}
        self._by_handle: dict[ConnectionHandle, Connection] = {}

    # ---- transport side ----

    def register(self, user_id: str, handle: ConnectionHandle) -> Connection:
        if not user_id:
            raise ValueError("user_id is required")

        conn = Connection(user_id=user_id, handle=handle)
        with self._lock:
            previous = self._by_handle.get(handle)
            if previous is not None:
                # Same session re-authenticated (possibly as someone else).
                self._drop_locked(previous)
            self._by_user.setdefault(user_id, {})[handle] = conn
            self._by_handle[handle] = conn
            total = len(self._by_user[user_id])

        logger.info("Connection registered user=%s sessions=%d", user_id, total)
        return conn

    def unregister(self, handle: ConnectionHandle) -> bool:
        with self._lock:
            conn = self._by_handle.get(handle)
            if conn is None:
                return False
            self._drop_locked(conn)

        logger.info("Connection unregistered user=%s", conn.user_id)
        return True

    def _drop_locked(self, conn: Connection) -> None:
        self._by_handle.pop(conn.handle, None)
        handles = self._by_user.get(conn.user_id)
        if handles is None:
            return
        handles.pop(conn.handle, None)
        if not handles:
            del self._by_user[conn.user_id]

    # ---- dispatcher side ----

    def send_to_user(self, user_id: str, payload: Payload) -> int:
        """Push payload to every live session of user_id. Unknown user -> 0."""
        with self._lock:
            handles = list(self._by_user.get(user_id, {}))

        if not handles:
            return 0
        return self._send_all(handles, payload)

    def broadcast(self, payload: Payload) -> int:
        with self._lock:
            handles = list(self._by_handle)

        return self._send_all(handles, payload)

    @staticmethod
    def _send_all(handles: list[ConnectionHandle], payload: Payload) -> int:
        delivered = 0
        for handle in handles:
            try:
                handle.send(payload)
            except Exception:
                logger.warning("Push to session %r failed", handle, exc_info=True)
                continue
            delivered += 1
        return delivered

    # ---- introspection ----

    def connected_users(self) -> list[str]:
        with self._lock:
            return list(self._by_user)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._by_handle)

    def is_connected(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._by_user

    def connections_for(self, user_id: str) -> list[Connection]:
        with self._lock:
            return list(self._by_user.get(user_id, {}).values())

    def clear(self) -> None:
        with self._lock:
            self._by_user.clear()
            self._by_handle.clear()
        logger.info("Connection registry cleared")
