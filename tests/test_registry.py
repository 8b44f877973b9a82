# tests/test_registry.py

from __future__ import annotations

import threading

import pytest

from taskpulse.realtime.registry import ConnectionRegistry

from .fakes import FailingHandle, RecordingHandle

PAYLOAD = {"kind": "task_assignment", "taskId": 1}


def test_unknown_user_gets_zero(registry: ConnectionRegistry) -> None:
    assert registry.send_to_user("ghost", PAYLOAD) == 0


def test_every_session_of_a_user_receives(registry: ConnectionRegistry) -> None:
    laptop, phone, other = RecordingHandle("laptop"), RecordingHandle("phone"), RecordingHandle("x")
    registry.register("u1", laptop)
    registry.register("u1", phone)
    registry.register("u2", other)

    assert registry.send_to_user("u1", PAYLOAD) == 2
    assert laptop.received == [PAYLOAD]
    assert phone.received == [PAYLOAD]
    assert other.received == []


def test_unregister_removes_only_that_session(registry: ConnectionRegistry) -> None:
    a, b = RecordingHandle("a"), RecordingHandle("b")
    registry.register("u1", a)
    registry.register("u1", b)

    assert registry.unregister(a) is True
    assert registry.unregister(a) is False

    assert registry.send_to_user("u1", PAYLOAD) == 1
    assert a.received == []
    assert registry.connections_for("u1")[0].handle is b


def test_last_session_gone_means_not_connected(registry: ConnectionRegistry) -> None:
    h = RecordingHandle()
    registry.register("u1", h)
    assert registry.is_connected("u1")

    registry.unregister(h)

    assert not registry.is_connected("u1")
    assert registry.connected_users() == []
    assert registry.connection_count() == 0


def test_failing_handle_does_not_block_others(registry: ConnectionRegistry) -> None:
    bad, good = FailingHandle("bad"), RecordingHandle("good")
    registry.register("u1", bad)
    registry.register("u1", good)

    assert registry.send_to_user("u1", PAYLOAD) == 1
    assert good.received == [PAYLOAD]
    # The transport owns liveness; a failed push does not unregister.
    assert registry.connection_count() == 2


def test_reregister_moves_handle_to_new_user(registry: ConnectionRegistry) -> None:
    h = RecordingHandle()
    registry.register("u1", h)
    registry.register("u2", h)

    assert registry.send_to_user("u1", PAYLOAD) == 0
    assert registry.send_to_user("u2", PAYLOAD) == 1
    assert registry.connection_count() == 1


def test_broadcast_reaches_everyone(registry: ConnectionRegistry) -> None:
    handles = [RecordingHandle(str(i)) for i in range(3)]
    for i, h in enumerate(handles):
        registry.register(f"u{i}", h)

    assert registry.broadcast(PAYLOAD) == 3
    assert all(h.received == [PAYLOAD] for h in handles)


def test_register_requires_user_id(registry: ConnectionRegistry) -> None:
    with pytest.raises(ValueError):
        registry.register("", RecordingHandle())


def test_clear(registry: ConnectionRegistry) -> None:
    registry.register("u1", RecordingHandle())
    registry.clear()
    assert registry.connection_count() == 0


def test_concurrent_register_send_unregister(registry: ConnectionRegistry) -> None:
    errors: list[BaseException] = []
    stable = RecordingHandle("stable")
    registry.register("u1", stable)

    def churn() -> None:
        try:
            for _ in range(200):
                h = RecordingHandle()
                registry.register("u1", h)
                registry.send_to_user("u1", PAYLOAD)
                registry.unregister(h)
        except BaseException as e:  # pragma: no cover - surfaced by the assert below
            errors.append(e)

    threads = [threading.Thread(target=churn) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert registry.connection_count() == 1
    assert len(stable.received) == 800
