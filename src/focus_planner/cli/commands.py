# src/focus_planner/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo

from ..core.state import AppState
from ..errors import NotFound
from ..records.models import Commitment, Section, Task, Timeframe

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

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

    async def handle(
        self,
        state: AppState,
        line: str,
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

        return await handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _short(record_id: str) -> str:
    return record_id[:8]


def _parse_day(raw: str | None, tz: tzinfo | None = None) -> datetime:
    """YYYY-MM-DD in the planning zone (system local when tz is None); today when omitted."""
    if not raw:
        return datetime.now(tz) if tz is not None else datetime.now().astimezone()
    try:
        day = datetime.strptime(raw, "%Y-%m-%d")
        return day.replace(tzinfo=tz) if tz is not None else day.astimezone()
    except ValueError:
        raise ValueError(f"Bad date {raw!r}, expected YYYY-MM-DD.") from None


def _parse_timeframe(raw: str) -> Timeframe:
    try:
        return Timeframe(raw.lower())
    except ValueError:
        choices = ", ".join(t.value for t in Timeframe)
        raise ValueError(f"Unknown timeframe {raw!r} (use one of: {choices}).") from None


async def _resolve_task(state: AppState, ref: str) -> Task:
    """Find a task by full id or unique id prefix."""
    matches = [t for t in await state.tasks.fetch_tasks() if t.id.startswith(ref)]
    if not matches:
        raise NotFound(f"task {ref}")
    if len(matches) > 1:
        raise ValueError(f"Ambiguous task id {ref!r}; type more characters.")
    return matches[0]


def _format_task(task: Task, indent: str = "") -> str:
    mark = "x" if task.is_completed else " "
    return f"{indent}[{mark}] {task.title} ({_short(task.id)})"


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    current = state.session.current
    who = (current.email or current.user_id) if current else "nobody"
    models = ", ".join(state.settings.llm_models)
    return (
        "Status:\n"
        f"  Backend: {state.settings.backend}\n"
        f"  Signed in: {who}\n"
        f"  Suggestions: {state.suggestion_backend.__class__.__name__}\n"
        f"  Models (priority -> fallback): {models}"
    )


async def cmd_signup(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return "Usage: /signup <email> <password>"
    auth = await state.session.sign_up(args[0], args[1])
    return f"Account created. Signed in as {auth.email or auth.user_id}."


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    auth = await state.session.sign_in(args[0], args[1])
    return f"Signed in as {auth.email or auth.user_id}."


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.session.is_authenticated:
        return "Not signed in."
    await state.session.sign_out()
    return "Signed out."


async def cmd_reset(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /reset <email>"
    await state.session.reset_password(args[0])
    return "If that account exists, a password reset email is on its way."


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tasks      -> library tasks with their subtasks
    /tasks log  -> tasks moved out of the library
    """
    in_library = not (args and args[0].lower() == "log")
    tasks = await state.tasks.fetch_library_tasks(in_library=in_library)
    if not tasks:
        return "No tasks."
    lines = ["Tasks:" if in_library else "Log:"]
    for task in tasks:
        lines.append(_format_task(task, "  "))
        for sub in await state.tasks.fetch_subtasks(task.id):
            lines.append(_format_task(sub, "      "))
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /add <title>"
    task = await state.tasks.create_task(" ".join(args))
    return f"Added {task.title!r} ({_short(task.id)})."


async def cmd_sub(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /sub <task-id> <title>"
    parent = await _resolve_task(state, args[0])
    sub = await state.tasks.create_subtask(" ".join(args[1:]), parent.id, project_id=parent.project_id)
    return f"Added subtask {sub.title!r} to {parent.title!r}."


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Toggle completion (subtasks also update their parent)."""
    if len(args) != 1:
        return "Usage: /done <task-id>"
    task = await _resolve_task(state, args[0])
    if task.is_subtask:
        updated = await state.tasks.toggle_subtask_completion(task.id)
    else:
        updated = await state.tasks.toggle_completion(task.id)
    return f"{updated.title!r} is now {'done' if updated.is_completed else 'open'}."


async def cmd_rm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /rm <task-id>"
    task = await _resolve_task(state, args[0])
    await state.tasks.delete_task(task.id)
    return f"Deleted {task.title!r}."


async def cmd_projects(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /projects          -> list projects
    /projects <title>  -> create a project
    """
    if args:
        project = await state.tasks.create_project(" ".join(args))
        return f"Created project {project.title!r} ({_short(project.id)})."
    projects = await state.tasks.fetch_projects()
    if not projects:
        return "No projects."
    lines = ["Projects:"]
    for project in projects:
        members = await state.tasks.fetch_project_tasks(project.id)
        done = sum(1 for t in members if t.is_completed)
        lines.append(f"  {project.title} ({_short(project.id)}) {done}/{len(members)} done")
    return "\n".join(lines)


async def cmd_cats(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /cats         -> list categories
    /cats <name>  -> create a category
    """
    if args:
        category = await state.categories.create_category(" ".join(args))
        return f"Created category {category.name!r}."
    categories = await state.categories.fetch_categories()
    if not categories:
        return "No categories."
    return "Categories:\n" + "\n".join(f"  {c.name}" for c in categories)


async def cmd_commit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/commit <task-id> <timeframe> [target|todo] [YYYY-MM-DD]"""
    if len(args) < 2:
        return "Usage: /commit <task-id> <daily|weekly|monthly|yearly> [target|todo] [YYYY-MM-DD]"
    task = await _resolve_task(state, args[0])
    timeframe = _parse_timeframe(args[1])
    section = Section.TODO
    rest = args[2:]
    if rest and rest[0].lower() in (Section.TARGET.value, Section.TODO.value):
        section = Section(rest[0].lower())
        rest = rest[1:]
    date = _parse_day(rest[0] if rest else None, state.commitments.tz)
    await state.commitments.create_commitment(task.id, timeframe, section, date)
    return f"Committed {task.title!r} to {timeframe.value} {section.value}."


def _format_commitments(
    state: AppState, title: str, commitments: list[Commitment], tasks: dict[str, Task]
) -> list[str]:
    lines = [f"  {title}:"]
    if not commitments:
        lines.append("    (empty)")
    for c in commitments:
        task = tasks.get(c.task_id)
        name = task.title if task else c.task_id
        mark = "x" if task and task.is_completed else " "
        when = f" @ {state.commitments.localize(c.scheduled_time):%H:%M}" if c.scheduled_time else ""
        lines.append(f"    [{mark}] {name}{when}")
    return lines


async def cmd_plan(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/plan <timeframe> [YYYY-MM-DD] -> targets and to-dos for that period"""
    if not args:
        return "Usage: /plan <daily|weekly|monthly|yearly> [YYYY-MM-DD]"
    timeframe = _parse_timeframe(args[0])
    date = _parse_day(args[1] if len(args) > 1 else None, state.commitments.tz)
    targets = await state.commitments.fetch_commitments(timeframe, date, Section.TARGET)
    todos = await state.commitments.fetch_commitments(timeframe, date, Section.TODO)
    tasks = {
        t.id: t
        for t in await state.tasks.fetch_tasks_by_ids({c.task_id for c in targets + todos})
    }
    limit = Section.TARGET.max_tasks(timeframe)
    lines = [f"{timeframe.value.capitalize()} plan for {date:%Y-%m-%d}:"]
    lines += _format_commitments(state, f"Target ({len(targets)}/{limit})", targets, tasks)
    lines += _format_commitments(state, "To do", todos, tasks)
    return "\n".join(lines)


async def cmd_suggest(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /suggest <task-id>      -> propose subtasks
    /suggest <task-id> add  -> propose and add them
    """
    if not args:
        return "Usage: /suggest <task-id> [add]"
    task = await _resolve_task(state, args[0])
    existing = [s.title for s in await state.tasks.fetch_subtasks(task.id)]

    if emit:
        emit(f"[AI] Asking for subtasks of {task.title!r}...")

    suggestions = await state.suggestions.suggest_subtasks(task.title, task.description, existing)
    if not suggestions:
        return "No new suggestions."

    if len(args) > 1 and args[1].lower() == "add":
        for title in suggestions:
            await state.tasks.create_subtask(title, task.id, project_id=task.project_id)
        return f"Added {len(suggestions)} subtasks to {task.title!r}."

    lines = [f"Suggestions for {task.title!r}:"]
    lines += [f"  - {s}" for s in suggestions]
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, user and suggestion settings.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password>.")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("reset", cmd_reset, help_text="Send a password reset: /reset <email>.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks | /tasks log.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <title>.")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub <task-id> <title>.")
registry.register("done", cmd_done, help_text="Toggle completion: /done <task-id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <task-id>.")
registry.register("projects", cmd_projects, help_text="List or create projects: /projects [title].")
registry.register("cats", cmd_cats, help_text="List or create categories: /cats [name].")
registry.register(
    "commit",
    cmd_commit,
    help_text="Commit a task: /commit <task-id> <timeframe> [target|todo] [YYYY-MM-DD].",
)
registry.register("plan", cmd_plan, help_text="Show a period plan: /plan <timeframe> [YYYY-MM-DD].")
registry.register("suggest", cmd_suggest, help_text="AI subtasks: /suggest <task-id> [add].")
