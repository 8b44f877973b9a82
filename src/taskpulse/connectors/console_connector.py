# src/taskpulse/connectors/console_connector.py

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any

from ..core.state import AppState

logger = logging.getLogger(__name__)

# print() from notification worker threads and from the REPL must not interleave.
_PRINT_LOCK = threading.Lock()


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    with _PRINT_LOCK:
        print(f"[{_ts_local()}] {text}", flush=True)


def format_notification(payload: dict[str, Any]) -> str:
    kind = payload.get("kind", "?")
    actor = (payload.get("actor") or {}).get("displayName") or "?"
    head = f"[NOTIFY] {kind} #{payload.get('taskId')} \"{payload.get('title', '')}\""

    if kind == "task_assignment":
        due = payload.get("dueAt") or "no due date"
        return f"{head} assigned by {actor} (priority {payload.get('priority')}, due {due})"
    if kind == "task_status_change":
        return f"{head}: {payload.get('oldStatus')} -> {payload.get('newStatus')} by {actor}"
    if kind == "task_completion":
        return f"{head} completed by {actor}"
    if kind == "task_priority_change":
        return f"{head}: priority {payload.get('oldPriority')} -> {payload.get('newPriority')} by {actor}"
    if kind == "overdue_task":
        return f"{head} is {payload.get('daysOverdue')} day(s) overdue!"
    if kind == "bulk_task_assignment":
        due = payload.get("dueAt") or "no due date"
        return (
            f"{head} assigned by {actor} in a batch of {payload.get('batchSize')} "
            f"(priority {payload.get('priority')}, due {due})"
        )
    if kind == "task_comment":
        return f"{head} {actor} commented: {payload.get('excerpt')}"
    if kind in ("overdue_escalation", "critical_overdue"):
        employee = (payload.get("employee") or {}).get("displayName") or "?"
        level = "CRITICAL: " if kind == "critical_overdue" else ""
        return f"{head} {level}{employee}'s task is {payload.get('daysOverdue')} day(s) overdue"
    if kind == "due_soon":
        return f"{head} is due in {payload.get('daysUntilDue')} day(s)"
    return head


class ConsoleSession:
    """
    The console as a live transport session.

    Registered in the ConnectionRegistry under whoever is logged in; pushed
    payloads are printed to the terminal. Hashes by identity.
    """

    def __init__(self) -> None:
        self.user_id: str | None = None

    def send(self, payload: dict[str, Any]) -> None:
        _print_ts(format_notification(payload))

    def __repr__(self) -> str:
        return f"ConsoleSession(user_id={self.user_id!r})"


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /login <user_id> first, /help for commands, /exit to quit.\n")

    session = ConsoleSession()
    commands = state.commands
    if commands is None:
        raise RuntimeError("AppState has no command table; build it with create_initial_state().")

    def emit(text: str) -> None:
        _print_ts(text)

    try:
        while True:
            try:
                prompt = f"{session.user_id or 'anonymous'}> "
                user_input = input(prompt).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                response = commands.handle(state, user_input, session=session, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is None:
                response = "Not a command. Use /help to list available commands."
            _print_ts(response)
    finally:
        state.registry.unregister(session)

    logger.info("Console connector finished.")
