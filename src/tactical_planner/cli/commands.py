# src/tactical_planner/cli/commands.py

from __future__ import annotations

import logging
import math
import shlex
from collections.abc import Callable, Iterable
from datetime import date, datetime

from ..core.clock import parse_timestamp
from ..core.errors import NotFoundError, PlannerError, ValidationError
from ..core.state import AppState
from ..diamond import level_by_id, level_for_score
from ..observations.models import Observation, ObservationStatus
from ..planning.realism import sort_for_display
from ..planning.task_models import ImportanceLevel, Task, TaskNode
from .bootstrap import save_state

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /task, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}
        self._raw: dict[str, frozenset[str]] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
        raw: Iterable[str] = (),
    ) -> None:
        """
        raw: subcommands that take free text. For "/name sub text...", the
        handler gets [sub, text] with text exactly as typed (no shlex parsing).
        """
        aliases = aliases or []
        raw_subs = frozenset(s.lower() for s in raw)
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        self._raw[key] = raw_subs
        for alias in aliases:
            self._handlers[alias.lower()] = handler
            self._raw[alias.lower()] = raw_subs

    def _parse_args(self, name: str, rest: str) -> list[str]:
        head = rest.split(None, 1)
        if head and head[0].lower() in self._raw.get(name, ()):
            return head
        return shlex.split(rest)

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Planner errors are turned into a rejection line; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split(None, 1)
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        rest = parts[1] if len(parts) > 1 else ""

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            args = self._parse_args(name, rest)
        except ValueError as e:
            return f"Cannot parse command: {e}."

        try:
            with state.lock:
                return handler(state, args)
        except PlannerError as e:
            logger.debug("Command /%s rejected: %s", name, e)
            return f"Rejected ({type(e).__name__}): {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def _split_kv(args: Iterable[str]) -> tuple[list[str], dict[str, str]]:
    positional: list[str] = []
    options: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep and key:
            options[key.lower()] = value
        else:
            positional.append(arg)
    return positional, options


def _resolve(ids: Iterable[str], prefix: str, kind: str) -> str:
    matches = [i for i in ids if i.startswith(prefix)]
    if prefix in matches:
        return prefix
    if not matches:
        raise NotFoundError(kind, prefix)
    if len(matches) > 1:
        raise ValidationError(f"ambiguous {kind} id prefix {prefix!r} ({len(matches)} matches)")
    return matches[0]


def _task_id(state: AppState, prefix: str) -> str:
    return _resolve((t.id for t in state.tasks.list_all()), prefix, "task")


def _observation_id(state: AppState, prefix: str) -> str:
    return _resolve((o.id for o in state.observations.list_all()), prefix, "observation")


def _float(raw: str, name: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from None


def _int(raw: str, name: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}") from None


def _timestamp(raw: str, name: str) -> datetime:
    try:
        return parse_timestamp(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO date/time, got {raw!r}") from None


def _day(raw: str) -> date:
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        raise ValidationError(f"date must be YYYY-MM-DD, got {raw!r}") from None


def _require(options: dict[str, str], key: str, usage: str) -> str:
    value = options.get(key)
    if value is None or value == "":
        raise ValidationError(f"missing {key}=... ({usage})")
    return value


def _short(ident: str) -> str:
    return ident[:8]


def _fmt_task(task: Task) -> str:
    return (
        f"{_short(task.id)} [{task.importance_level.label}] {task.title} "
        f"RT={task.required_time:g}h IDL={task.ideal_deadline:%Y-%m-%d %H:%M}"
    )


def _fmt_tree(nodes: list[TaskNode], depth: int = 0) -> list[str]:
    lines: list[str] = []
    for node in nodes:
        marks = ""
        if node.task.links_to or node.linked_from:
            marks = f" <links out={len(node.task.links_to)} in={len(node.linked_from)}>"
        lines.append("  " * depth + "- " + _fmt_task(node.task) + marks)
        lines.extend(_fmt_tree(node.children, depth + 1))
    return lines


def _fmt_observation(state: AppState, obs: Observation) -> str:
    status = state.observations.effective_status(obs)
    line = f"{_short(obs.id)} ({status.value}) {obs.content}"
    if status == ObservationStatus.IN_BUFFER:
        line += f" [{state.observations.days_remaining(obs)} day(s) left]"
    if obs.converted_task_id:
        line += f" -> task {_short(obs.converted_task_id)}"
    return line


def _autosave(state: AppState) -> None:
    if getattr(state.settings, "autosave", False):
        save_state(state)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


TASK_USAGE = (
    "Usage:\n"
    "  /task add title=... rt=<hours> idl=<YYYY-MM-DD[THH:MM]> [il=1..4] [parent=<id>]\n"
    "  /task edit <id> [title=...] [rt=...] [idl=...] [il=...] [parent=<id>|none]\n"
    "  /task rm <id>\n"
    "  /task show <id>\n"
    "  /task list\n"
    "  /task day [YYYY-MM-DD]\n"
    "  /task tree\n"
    "  /task link <from> <to> | /task unlink <from> <to>"
)


def cmd_task(state: AppState, args: list[str]) -> str:
    if not args:
        return TASK_USAGE

    sub = args[0].lower()
    positional, options = _split_kv(args[1:])

    if sub == "add":
        usage = "/task add title=... rt=... idl=..."
        parent = options.get("parent")
        task = state.tasks.create(
            title=_require(options, "title", usage),
            required_time=_float(_require(options, "rt", usage), "rt"),
            ideal_deadline=_timestamp(_require(options, "idl", usage), "idl"),
            importance_level=_int(options.get("il", str(int(ImportanceLevel.MEDIUM))), "il"),
            parent_task_id=_task_id(state, parent) if parent else None,
        )
        _autosave(state)
        return f"Task created: {_fmt_task(task)}"

    if sub == "edit":
        if not positional:
            return TASK_USAGE
        task_id = _task_id(state, positional[0])
        changes: dict[str, object] = {}
        if "title" in options:
            changes["title"] = options["title"]
        if "rt" in options:
            changes["required_time"] = _float(options["rt"], "rt")
        if "idl" in options:
            changes["ideal_deadline"] = _timestamp(options["idl"], "idl")
        if "il" in options:
            changes["importance_level"] = _int(options["il"], "il")
        if "parent" in options:
            raw = options["parent"]
            changes["parent_task_id"] = None if raw.lower() in ("", "none") else _task_id(state, raw)
        if not changes:
            return "Nothing to change."
        task = state.tasks.update(task_id, **changes)
        _autosave(state)
        return f"Task updated: {_fmt_task(task)}"

    if sub in ("rm", "del", "delete"):
        if not positional:
            return TASK_USAGE
        removed = state.tasks.delete(_task_id(state, positional[0]))
        _autosave(state)
        extra = f" (including {len(removed) - 1} subtask(s))" if len(removed) > 1 else ""
        return f"Task deleted{extra}."

    if sub == "show":
        if not positional:
            return TASK_USAGE
        task_id = _task_id(state, positional[0])
        task = state.tasks.get_by_id(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        lines = [_fmt_task(task)]
        if task.parent_task_id:
            lines.append(f"  parent: {_short(task.parent_task_id)}")
        for sub_task in state.tasks.get_subtasks(task_id):
            lines.append(f"  subtask: {_fmt_task(sub_task)}")
        for target in task.links_to:
            lines.append(f"  links to: {_short(target)}")
        for source in state.tasks.get_linked_from(task_id):
            lines.append(f"  linked from: {_short(source.id)}")
        return "\n".join(lines)

    if sub == "list":
        tasks = state.tasks.list_all()
        if not tasks:
            return "No tasks."
        return "\n".join(_fmt_task(t) for t in tasks)

    if sub == "day":
        day = _day(positional[0]) if positional else state.scheduler.today()
        tasks = sort_for_display(state.scheduler.tasks_for_date(day, roots_only=True))
        if not tasks:
            return f"No tasks for {day.isoformat()}."
        total = sum(t.required_time for t in tasks)
        lines = [f"Tasks for {day.isoformat()} (total RT {total:g}h):"]
        lines.extend(_fmt_task(t) for t in tasks)
        return "\n".join(lines)

    if sub == "tree":
        tree = state.tasks.get_task_tree()
        if not tree:
            return "No tasks."
        return "\n".join(_fmt_tree(tree))

    if sub in ("link", "unlink"):
        if len(positional) < 2:
            return TASK_USAGE
        from_id = _task_id(state, positional[0])
        to_id = _task_id(state, positional[1])
        if sub == "link":
            state.tasks.add_link(from_id, to_id)
        else:
            state.tasks.remove_link(from_id, to_id)
        _autosave(state)
        return f"Link {'added' if sub == 'link' else 'removed'}: {_short(from_id)} -> {_short(to_id)}"

    return "Unknown /task subcommand.\n" + TASK_USAGE


def cmd_rp(state: AppState, args: list[str]) -> str:
    """
    /rp                   -> today's Realism Point with the current available time
    /rp 2026-10-20        -> RP for that day
    /rp 2026-10-20 6      -> RP for that day with 6 available hours
    """
    day = _day(args[0]) if args else state.scheduler.today()
    available = _float(args[1], "available time") if len(args) > 1 else state.available_time

    report = state.scheduler.report(day, available, roots_only=True)
    lines = [
        f"Realism Point for {day.isoformat()}: {report.realism_point:.2f} ({report.zone.value.upper()})",
        f"  Total RT: {report.total_required_time:g}h / available {report.available_time:g}h",
    ]
    lines.extend("  " + _fmt_task(t) for t in report.tasks)
    return "\n".join(lines)


def cmd_avail(state: AppState, args: list[str]) -> str:
    if not args:
        return f"Available time: {state.available_time:g}h."
    hours = _float(args[0], "available time")
    if not math.isfinite(hours) or hours < 0:
        raise ValidationError("available time must be >= 0")
    state.available_time = hours
    return f"Available time set to {hours:g}h."


def cmd_cwa(state: AppState, args: list[str]) -> str:
    non_must = [t for t in state.tasks.list_all() if t.importance_level != ImportanceLevel.MUST]
    if not non_must:
        return "No non-critical tasks to wipe. All tasks are MUST (level 1)."
    if not args or args[0].lower() != "confirm":
        return (
            f"CWA will permanently delete {len(non_must)} non-critical task(s) "
            "and keep only MUST tasks. Run /cwa confirm to proceed."
        )
    removed = state.scheduler.catastrophic_wipe_out()
    _autosave(state)
    return f"CWA executed. {removed} non-critical task(s) removed."


OB_USAGE = (
    "Usage:\n"
    "  /ob add <text>\n"
    "  /ob list\n"
    "  /ob analyze <id> [tags=a,b] [li=...] [ep=<number>]\n"
    "  /ob convert <id> rt=<hours> idl=<YYYY-MM-DD[THH:MM]> [il=1..4] [title=...] [parent=<id>]\n"
    "  /ob rm <id>"
)


def cmd_ob(state: AppState, args: list[str]) -> str:
    if not args:
        return OB_USAGE

    sub = args[0].lower()

    if sub == "add":
        # Free text, kept exactly as typed.
        obs = state.observations.capture(args[1] if len(args) > 1 else "")
        _autosave(state)
        return (
            f"Observation caught: {_short(obs.id)}. It stays in buffer for "
            f"{state.observations.buffer_days} day(s) before analysis."
        )

    positional, options = _split_kv(args[1:])

    if sub == "list":
        obs_repo = state.observations
        sections = [
            ("Ready for analysis", obs_repo.get_ready_for_analysis()),
            ("In buffer", obs_repo.get_in_buffer()),
            ("Analyzed", obs_repo.get_analyzed()),
        ]
        lines: list[str] = []
        for title, items in sections:
            if items:
                lines.append(f"{title} ({len(items)}):")
                lines.extend("  " + _fmt_observation(state, o) for o in items)
        return "\n".join(lines) if lines else "No observations."

    if sub == "analyze":
        if not positional:
            return OB_USAGE
        obs = state.observations.analyze(
            _observation_id(state, positional[0]),
            tags=options.get("tags", "").split(","),
            lesson_identified=options.get("li"),
            evaluation_point=_float(options["ep"], "ep") if options.get("ep") else None,
        )
        _autosave(state)
        return f"Observation analyzed: {_short(obs.id)} tags={list(obs.tags)}"

    if sub == "convert":
        if not positional:
            return OB_USAGE
        usage = "/ob convert <id> rt=... idl=..."
        parent = options.get("parent")
        task = state.bridge.convert(
            _observation_id(state, positional[0]),
            required_time=_float(_require(options, "rt", usage), "rt"),
            ideal_deadline=_timestamp(_require(options, "idl", usage), "idl"),
            importance_level=_int(options.get("il", str(int(ImportanceLevel.MEDIUM))), "il"),
            title=options.get("title"),
            parent_task_id=_task_id(state, parent) if parent else None,
        )
        _autosave(state)
        return f"Observation converted to task: {_fmt_task(task)}"

    if sub in ("rm", "del", "delete"):
        if not positional:
            return OB_USAGE
        state.observations.delete(_observation_id(state, positional[0]))
        _autosave(state)
        return "Observation deleted."

    return "Unknown /ob subcommand.\n" + OB_USAGE


def cmd_level(state: AppState, args: list[str]) -> str:
    """
    /level 82     -> level for a score
    /level id=2   -> score range of a level
    """
    positional, options = _split_kv(args)
    if "id" in options:
        level = level_by_id(_int(options["id"], "id"))
    elif positional:
        level = level_for_score(_float(positional[0], "score"))
    else:
        return "Usage: /level <score 0..100> | /level id=<1..5>"
    upper = "]" if level.max == 100 else ")"
    return f"Level {level.id}: {level.label} [{level.min:g}..{level.max:g}{upper}"


def cmd_save(state: AppState, args: list[str]) -> str:
    if state.store is None:
        return "No store configured."
    save_state(state)
    return "Saved."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register(
    "task", cmd_task, help_text="Tasks: add | edit | rm | show | list | day | tree | link | unlink."
)
registry.register("rp", cmd_rp, help_text="Realism Point: /rp [YYYY-MM-DD] [hours].")
registry.register("avail", cmd_avail, help_text="Show or set available time: /avail [hours].")
registry.register("cwa", cmd_cwa, help_text="Catastrophic Wipe Out: /cwa confirm.")
registry.register(
    "ob",
    cmd_ob,
    help_text="Observations: add | list | analyze | convert | rm.",
    raw=["add"],
)
registry.register(
    "level", cmd_level, help_text="Diamond System level: /level <0..100> | /level id=<1..5>."
)
registry.register("save", cmd_save, help_text="Save planner state now.")
