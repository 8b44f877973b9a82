# src/taskpulse/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, cast

from ..core.errors import TaskError
from ..core.state import AppState
from ..notifications.events import NotificationCategory
from ..tasks.task_models import Task, TaskPatch, TaskSpec
from ..tasks.task_scheduler import ScanReport

if TYPE_CHECKING:
    from ..connectors.console_connector import ConsoleSession

CommandEmitter = Callable[[str], None]
CommandHandler3 = Callable[[AppState, list[str], "ConsoleSession"], str]
CommandHandler4 = Callable[[AppState, list[str], "ConsoleSession", CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /new, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        session: ConsoleSession,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 4

        try:
            if nparams >= 4:
                h4 = cast(CommandHandler4, handler)
                return h4(state, args, session, emit)

            h3 = cast(CommandHandler3, handler)
            return h3(state, args, session)
        except TaskError as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)



def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def _fmt_task(task: Task) -> str:
    return (
        f"#{task.id} [{task.status.value}] {task.title} "
        f"(to={task.assigned_to}, by={task.assigned_by}, "
        f"priority={task.priority.value}, due={_fmt_ts(task.due_at)})"
    )


def _require_login(session: ConsoleSession) -> str | None:
    if not session.user_id:
        return "Log in first: /login <user_id>."
    return None


def _parse_task_id(raw: str) -> int | None:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        return None


def cmd_help(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if state.commands is None:
        return "No command table configured."
    return state.commands.build_help()


def cmd_login(
    state: AppState,
    args: list[str],
    session: ConsoleSession,
    emit: CommandEmitter | None = None,
) -> str:
    """
    /login <user_id>               -> open a live session as user_id
    /login <user_id> <Display Name> -> same, and remember the display name
    """
    if not args:
        return "Usage: /login <user_id> [display name]"

    user_id = args[0]
    if len(args) > 1:
        state.users.set_display_name(user_id, " ".join(args[1:]))

    state.registry.register(user_id, session)
    session.user_id = user_id

    if emit:
        with contextlib.suppress(Exception):
            emit(f"[SESSION] live notifications for {user_id} are now printed here.")

    logger.debug("Console login user=%s", user_id)
    return f"Logged in as {state.users.resolve_user_summary(user_id).display_name} ({user_id})."


def cmd_logout(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if not session.user_id:
        return "Not logged in."
    state.registry.unregister(session)
    who = session.user_id
    session.user_id = None
    return f"Logged out {who}."


def cmd_whoami(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if not session.user_id:
        return "Not logged in."
    summary = state.users.resolve_user_summary(session.user_id)
    return f"{summary.display_name} ({summary.id})"


def cmd_new(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """
    /new <title words...> [@assignee] [due=2025-03-01] [priority=high]
    """
    if (msg := _require_login(session)) is not None:
        return msg

    title_words: list[str] = []
    assignee: str | None = None
    due: str | None = None
    priority = "medium"
    for a in args:
        if a.startswith("@") and len(a) > 1:
            assignee = a[1:]
        elif a.startswith("due="):
            due = a[4:]
        elif a.startswith("priority="):
            priority = a[9:]
        else:
            title_words.append(a)

    spec = TaskSpec(
        title=" ".join(title_words),
        assigned_to=assignee,
        priority=priority,
        due_date=due,
    )
    task = state.lifecycle.create_task(spec, session.user_id)
    return f"Created {_fmt_task(task)}"


def cmd_status(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/status <task_id> <todo|in_progress|completed|cancelled>"""
    if (msg := _require_login(session)) is not None:
        return msg
    if len(args) != 2 or (task_id := _parse_task_id(args[0])) is None:
        return "Usage: /status <task_id> <todo|in_progress|completed|cancelled>"

    task = state.lifecycle.update_task(task_id, TaskPatch(status=args[1]), session.user_id)
    return f"Updated {_fmt_task(task)}"


def cmd_priority(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/priority <task_id> <low|medium|high|urgent>"""
    if (msg := _require_login(session)) is not None:
        return msg
    if len(args) != 2 or (task_id := _parse_task_id(args[0])) is None:
        return "Usage: /priority <task_id> <low|medium|high|urgent>"

    task = state.lifecycle.update_task(task_id, TaskPatch(priority=args[1]), session.user_id)
    return f"Updated {_fmt_task(task)}"


def cmd_show(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if len(args) != 1 or (task_id := _parse_task_id(args[0])) is None:
        return "Usage: /show <task_id>"
    task = state.task_store.get_task(task_id)
    if task is None or task.is_deleted:
        return f"Task {task_id} not found."
    lines = [_fmt_task(task)]
    if task.description:
        lines.append(f"  {task.description}")
    lines.append(f"  created={_fmt_ts(task.created_at)} updated={_fmt_ts(task.updated_at)}")
    if task.completed_at is not None:
        lines.append(f"  completed={_fmt_ts(task.completed_at)}")
    return "\n".join(lines)


def cmd_tasks(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if (msg := _require_login(session)) is not None:
        return msg
    tasks = state.task_store.list_open_tasks_for_user(session.user_id, limit=30)
    if not tasks:
        return f"No open tasks for {session.user_id}."
    return "\n".join([f"Open tasks for {session.user_id}:"] + [f"  {_fmt_task(t)}" for t in tasks])


def cmd_prefs(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """
    /prefs                      -> show notification categories
    /prefs <category> on|off    -> toggle a category
    /prefs reset                -> back to all enabled
    """
    if (msg := _require_login(session)) is not None:
        return msg
    user_id = session.user_id

    if not args:
        prefs = state.preferences.get_preferences(user_id)
        lines = [f"Notification preferences for {user_id}:"]
        for cat in NotificationCategory:
            on = prefs.get(cat.value, True)
            lines.append(f"  {cat.value}: {'on' if on else 'off'}")
        return "\n".join(lines)

    if args[0].lower() == "reset":
        state.preferences.reset_preferences(user_id)
        return "Preferences reset (everything on)."

    if len(args) != 2 or args[1].lower() not in ("on", "off"):
        return "Usage: /prefs <category> on|off"

    try:
        category = NotificationCategory(args[0].lower())
    except ValueError:
        names = ", ".join(c.value for c in NotificationCategory)
        return f"Unknown category {args[0]!r}. Known: {names}"

    state.preferences.set_preference(user_id, category, args[1].lower() == "on")
    return f"{category.value} is now {args[1].lower()}."


def _fmt_report(report: ScanReport) -> str:
    if report.query_failed:
        return f"{report.scanner.value} scan: query failed (see log)."
    text = (
        f"{report.scanner.value} scan: candidates={report.candidates} "
        f"dispatched={report.dispatched} skipped={report.skipped} failed={report.failed}"
    )
    if report.escalations:
        text += f" escalations={report.escalations}"
    return f"{text} pages={report.pages}"


def cmd_scan(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/scan overdue|due_soon -> run one scan now"""
    if len(args) != 1:
        return "Usage: /scan overdue|due_soon"
    name = args[0].lower()

    sched = state.scheduler(name)
    if sched is None:
        return f"Unknown scanner {name!r}."

    if state.scanner_runner is not None:
        report = state.scanner_runner.trigger(name)
    else:
        report = asyncio.run(sched.run_once())
    return _fmt_report(report)


def cmd_who(state: AppState, args: list[str], session: ConsoleSession) -> str:
    users = state.registry.connected_users()
    return f"Live sessions: {state.registry.connection_count()} (users: {', '.join(users) or '-'})"


def cmd_jobs(state: AppState, args: list[str], session: ConsoleSession) -> str:
    if not state.schedulers:
        return "No scanners configured."
    lines = ["Scanners:"]
    for sched in state.schedulers:
        st = sched.status()
        last = st["last_report"]
        last_s = _fmt_report(sched.last_report) if last else "never ran"
        lines.append(
            f"  {st['scanner']}: running={st['running']} every {st['interval_seconds']:.0f}s "
            f"runs={st['runs']} | {last_s}"
        )
    return "\n".join(lines)


def cmd_quiet(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """
    /quiet                  -> show quiet hours
    /quiet <HH:MM> <HH:MM>  -> mute notifications between the two times (may wrap midnight)
    /quiet off              -> remove quiet hours
    """
    if (msg := _require_login(session)) is not None:
        return msg
    user_id = session.user_id

    if not args:
        quiet = state.preferences.get_quiet_hours(user_id)
        if quiet is None or not quiet.enabled:
            return "Quiet hours: off."
        return f"Quiet hours: {quiet.start}-{quiet.end}."

    if len(args) == 1 and args[0].lower() == "off":
        state.preferences.clear_quiet_hours(user_id)
        return "Quiet hours: off."

    if len(args) != 2:
        return "Usage: /quiet <HH:MM> <HH:MM> | off"
    try:
        quiet = state.preferences.set_quiet_hours(user_id, args[0], args[1])
    except ValueError as e:
        return f"Error: {e}"
    return f"Quiet hours: {quiet.start}-{quiet.end}."


def cmd_comment(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/comment <task_id> <text...>"""
    if (msg := _require_login(session)) is not None:
        return msg
    if len(args) < 2 or (task_id := _parse_task_id(args[0])) is None:
        return "Usage: /comment <task_id> <text>"

    notified = state.lifecycle.notify_comment(task_id, session.user_id, " ".join(args[1:]))
    return f"Comment on #{task_id} sent to {', '.join(notified) or 'nobody'}."


def cmd_bulk(state: AppState, args: list[str], session: ConsoleSession) -> str:
    """/bulk <title words...> @u1 @u2 ... [due=...] [priority=...]"""
    if (msg := _require_login(session)) is not None:
        return msg

    title_words: list[str] = []
    assignees: list[str] = []
    due: str | None = None
    priority = "medium"
    for a in args:
        if a.startswith("@") and len(a) > 1:
            assignees.append(a[1:])
        elif a.startswith("due="):
            due = a[4:]
        elif a.startswith("priority="):
            priority = a[9:]
        else:
            title_words.append(a)

    spec = TaskSpec(title=" ".join(title_words), priority=priority, due_date=due)
    tasks = state.lifecycle.create_tasks_bulk(spec, assignees, session.user_id)
    return "\n".join([f"Created {len(tasks)} task(s):"] + [f"  {_fmt_task(t)}" for t in tasks])


def build_command_registry() -> CommandRegistry:
    """Console command table; the composition root keeps one per AppState."""
    reg = CommandRegistry()
    reg.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
    reg.register("login", cmd_login, help_text="Open a live session: /login <user_id> [name].")
    reg.register("logout", cmd_logout, help_text="Close the live session.")
    reg.register("whoami", cmd_whoami, help_text="Show the logged-in user.")
    reg.register(
        "new", cmd_new, help_text="Create a task: /new <title> [@assignee] [due=...] [priority=...]."
    )
    reg.register(
        "bulk", cmd_bulk, help_text="Assign one task to many: /bulk <title> @u1 @u2 [due=...]."
    )
    reg.register("status", cmd_status, help_text="Change task status: /status <id> <status>.")
    reg.register(
        "priority", cmd_priority, help_text="Change task priority: /priority <id> <priority>."
    )
    reg.register("comment", cmd_comment, help_text="Comment on a task: /comment <id> <text>.")
    reg.register("show", cmd_show, help_text="Show one task: /show <id>.")
    reg.register("tasks", cmd_tasks, help_text="List your open tasks.")
    reg.register("prefs", cmd_prefs, help_text="Notification preferences: /prefs [<category> on|off].")
    reg.register("quiet", cmd_quiet, help_text="Quiet hours: /quiet <HH:MM> <HH:MM> | off.")
    reg.register("scan", cmd_scan, help_text="Run a scan now: /scan overdue|due_soon.")
    reg.register("who", cmd_who, help_text="Show live sessions.")
    reg.register("jobs", cmd_jobs, help_text="Show scanner status.")
    return reg
