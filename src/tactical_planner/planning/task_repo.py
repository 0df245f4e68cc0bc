# src/tactical_planner/planning/task_repo.py

from __future__ import annotations

import contextlib
import logging
import math
import threading
import uuid
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from ..core.clock import Clock, ensure_aware, local_now, start_of_day
from ..core.errors import CycleError, NotFoundError, ValidationError
from .task_models import ImportanceLevel, Task, TaskNode

logger = logging.getLogger(__name__)
audit = logging.getLogger("tactical_planner.audit")

_UNSET: Any = object()


def _new_id() -> str:
    return uuid.uuid4().hex


def validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title is required")
    return title.strip()


def validate_required_time(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"required time must be a number of hours, got {value!r}")
    rt = float(value)
    if not math.isfinite(rt) or rt < 0:
        raise ValidationError(f"required time must be >= 0, got {value!r}")
    return rt


def validate_importance(value: Any) -> ImportanceLevel:
    if isinstance(value, bool):
        raise ValidationError(f"importance level must be 1..4, got {value!r}")
    try:
        return ImportanceLevel(value)
    except (TypeError, ValueError):
        raise ValidationError(f"importance level must be 1..4, got {value!r}") from None


def validate_deadline(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return start_of_day(value)
    raise ValidationError(f"ideal deadline must be a datetime, got {value!r}")


class TaskRepository:
    """
    In-memory task repository.

    Two independent relations are kept over the same flat store:
    - hierarchy: parent_task_id on each task, mirrored by a parent -> children
      index (key None holds the roots). It is acyclic, drives cascade deletion
      and tree rendering.
    - links: links_to on each task. Directional, informational, cycles allowed.
      The reverse direction is always derived, never stored.

    Thread-safety:
    - every public method runs under one re-entrant lock; returned tasks are
      immutable snapshots, so readers never see a half-applied mutation.
    """

    def __init__(
        self,
        *,
        clock: Clock = local_now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self._id_factory = id_factory

        self._tasks: dict[str, Task] = {}
        self._seq: dict[str, int] = {}
        self._next_seq = 0
        self._children: dict[str | None, list[str]] = {None: []}

    @contextlib.contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the writer lock across several calls (used by the bridge)."""
        with self._lock:
            yield

    # ---- index helpers ----

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def _attach(self, task_id: str, parent_id: str | None) -> None:
        kids = self._children.setdefault(parent_id, [])
        kids.append(task_id)
        # Siblings stay in creation order, also after a re-parent.
        if len(kids) > 1 and self._seq[kids[-2]] > self._seq[task_id]:
            kids.sort(key=self._seq.__getitem__)

    def _detach(self, task_id: str, parent_id: str | None) -> None:
        kids = self._children.get(parent_id)
        if kids and task_id in kids:
            kids.remove(task_id)

    def _insert(self, task: Task) -> None:
        self._tasks[task.id] = task
        self._seq[task.id] = self._next_seq
        self._next_seq += 1
        self._attach(task.id, task.parent_task_id)

    def _subtree_ids(self, root_id: str) -> list[str]:
        out: list[str] = []
        seen: set[str] = set()
        stack = [root_id]
        while stack:
            tid = stack.pop()
            if tid in seen:
                continue
            seen.add(tid)
            out.append(tid)
            stack.extend(self._children.get(tid, ()))
        return out

    def _ancestor_ids(self, task_id: str) -> Iterator[str]:
        seen: set[str] = set()
        current = self._tasks.get(task_id)
        while current is not None and current.parent_task_id is not None:
            pid = current.parent_task_id
            if pid in seen:
                return
            seen.add(pid)
            yield pid
            current = self._tasks.get(pid)

    def _remove_ids(self, doomed: set[str]) -> None:
        for tid in doomed:
            task = self._tasks.pop(tid)
            self._seq.pop(tid, None)
            self._detach(tid, task.parent_task_id)
            self._children.pop(tid, None)

        # Prune links into removed tasks so none dangle.
        for tid, task in list(self._tasks.items()):
            if any(target in doomed for target in task.links_to):
                kept = tuple(t for t in task.links_to if t not in doomed)
                self._tasks[tid] = replace(task, links_to=kept)

    def _reverse_links(self) -> dict[str, list[str]]:
        rev: dict[str, list[str]] = {}
        for task in self._tasks.values():
            for target in task.links_to:
                rev.setdefault(target, []).append(task.id)
        return rev

    # ---- commands ----

    def create(
        self,
        *,
        title: str,
        required_time: float,
        ideal_deadline: datetime | date,
        importance_level: int = ImportanceLevel.MEDIUM,
        parent_task_id: str | None = None,
        links_to: Iterable[str] = (),
    ) -> Task:
        clean_title = validate_title(title)
        rt = validate_required_time(required_time)
        idl = validate_deadline(ideal_deadline)
        il = validate_importance(importance_level)

        with self._lock:
            if parent_task_id is not None:
                self._require(parent_task_id)

            links: list[str] = []
            for target in links_to:
                self._require(target)
                if target not in links:
                    links.append(target)

            task_id = self._id_factory()
            if task_id in self._tasks:
                raise ValidationError(f"id factory produced a duplicate id: {task_id}")

            task = Task(
                id=task_id,
                title=clean_title,
                required_time=rt,
                ideal_deadline=idl,
                importance_level=il,
                created_at=ensure_aware(self._clock()),
                parent_task_id=parent_task_id,
                links_to=tuple(links),
            )
            self._insert(task)

        logger.info(
            "Task created id=%s il=%s rt=%s parent=%s", task.id, int(il), rt, parent_task_id
        )
        return task

    def update(
        self,
        task_id: str,
        *,
        title: str = _UNSET,
        required_time: float = _UNSET,
        ideal_deadline: datetime | date = _UNSET,
        importance_level: int = _UNSET,
        parent_task_id: str | None = _UNSET,
    ) -> Task:
        """
        Apply a partial update. Only the given fields are re-validated.

        Passing parent_task_id=None detaches the task (it becomes a root).
        """
        changes: dict[str, Any] = {}
        if title is not _UNSET:
            changes["title"] = validate_title(title)
        if required_time is not _UNSET:
            changes["required_time"] = validate_required_time(required_time)
        if ideal_deadline is not _UNSET:
            changes["ideal_deadline"] = validate_deadline(ideal_deadline)
        if importance_level is not _UNSET:
            changes["importance_level"] = validate_importance(importance_level)

        with self._lock:
            current = self._require(task_id)

            if parent_task_id is not _UNSET and parent_task_id != current.parent_task_id:
                if parent_task_id is not None:
                    self._require(parent_task_id)
                    if parent_task_id == task_id or task_id in self._ancestor_ids(parent_task_id):
                        raise CycleError(
                            f"task {task_id} cannot move under its own descendant {parent_task_id}"
                        )
                changes["parent_task_id"] = parent_task_id

            if not changes:
                return current

            updated = replace(current, **changes)
            self._tasks[task_id] = updated
            if "parent_task_id" in changes:
                self._detach(task_id, current.parent_task_id)
                self._attach(task_id, updated.parent_task_id)

        logger.debug("Task updated id=%s fields=%s", task_id, sorted(changes))
        return updated

    def delete(self, task_id: str) -> list[str]:
        """Remove the task and all its descendants. Returns the removed ids."""
        with self._lock:
            self._require(task_id)
            removed = self._subtree_ids(task_id)
            self._remove_ids(set(removed))

        logger.info("Task deleted id=%s cascade=%d", task_id, len(removed) - 1)
        audit.info("Task deleted %s (with subtasks: %s)", task_id, " ".join(removed[1:]) or "-")
        return removed

    def delete_matching(self, predicate: Callable[[Task], bool]) -> list[str]:
        """
        Remove every task matching predicate in one step.

        This does not cascade: a surviving task whose parent is removed
        is detached and becomes a root.
        """
        with self._lock:
            doomed = {tid for tid, task in self._tasks.items() if predicate(task)}
            if not doomed:
                return []

            for tid in list(self._tasks):
                task = self._tasks[tid]
                if tid not in doomed and task.parent_task_id in doomed:
                    self._detach(tid, task.parent_task_id)
                    self._tasks[tid] = replace(task, parent_task_id=None)
                    self._attach(tid, None)

            removed = [tid for tid in self._tasks if tid in doomed]
            self._remove_ids(doomed)

        logger.info("Bulk delete removed=%d", len(removed))
        return removed

    def add_link(self, from_id: str, to_id: str) -> None:
        with self._lock:
            source = self._require(from_id)
            self._require(to_id)
            if from_id == to_id:
                raise ValidationError(f"task {from_id} cannot link to itself")
            if to_id in source.links_to:
                return
            self._tasks[from_id] = replace(source, links_to=(*source.links_to, to_id))
        logger.debug("Link added %s -> %s", from_id, to_id)

    def remove_link(self, from_id: str, to_id: str) -> None:
        with self._lock:
            source = self._require(from_id)
            self._require(to_id)
            if from_id == to_id:
                raise ValidationError(f"task {from_id} cannot link to itself")
            if to_id not in source.links_to:
                return
            kept = tuple(t for t in source.links_to if t != to_id)
            self._tasks[from_id] = replace(source, links_to=kept)
        logger.debug("Link removed %s -> %s", from_id, to_id)

    def restore(self, tasks: Iterable[Task]) -> None:
        """
        Replace the repository content with previously saved tasks.

        Dangling parents and link targets are repaired; a parent cycle in the
        loaded data is kept (tree traversal stays bounded).
        """
        loaded: list[Task] = []
        ids: set[str] = set()
        for task in tasks:
            if task.id in ids:
                raise ValidationError(f"duplicate task id in saved data: {task.id}")
            ids.add(task.id)
            loaded.append(
                replace(
                    task,
                    title=validate_title(task.title),
                    required_time=validate_required_time(task.required_time),
                    ideal_deadline=validate_deadline(task.ideal_deadline),
                    importance_level=validate_importance(task.importance_level),
                    created_at=ensure_aware(task.created_at),
                )
            )

        with self._lock:
            self._tasks.clear()
            self._seq.clear()
            self._next_seq = 0
            self._children = {None: []}

            for task in loaded:
                parent = task.parent_task_id
                if parent is not None and parent not in ids:
                    logger.warning("Task %s has unknown parent %s; detaching", task.id, parent)
                    parent = None

                links: list[str] = []
                for target in task.links_to:
                    if target == task.id or target not in ids:
                        logger.warning("Task %s has invalid link -> %s; dropping", task.id, target)
                        continue
                    if target not in links:
                        links.append(target)

                self._insert(replace(task, parent_task_id=parent, links_to=tuple(links)))

        logger.info("TaskRepository restored total=%d", len(loaded))

    # ---- queries ----

    def get_by_id(self, task_id: str) -> Task | None:
        with self._lock:
            return self._tasks.get(task_id)

    def count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def list_all(self) -> list[Task]:
        """All tasks in creation order."""
        with self._lock:
            return list(self._tasks.values())

    def get_root_tasks(self) -> list[Task]:
        with self._lock:
            return [self._tasks[tid] for tid in self._children[None]]

    def get_subtasks(self, task_id: str) -> list[Task]:
        """Direct children only; empty for an unknown id."""
        with self._lock:
            return [self._tasks[tid] for tid in self._children.get(task_id, ())]

    def get_linked_from(self, task_id: str) -> list[Task]:
        """Tasks that link to task_id (derived from links_to)."""
        with self._lock:
            return [t for t in self._tasks.values() if task_id in t.links_to]

    def list_due_between(
        self, start: datetime, end: datetime, *, roots_only: bool = False
    ) -> list[Task]:
        """Tasks whose ideal deadline falls in [start, end)."""
        with self._lock:
            return [
                t
                for t in self._tasks.values()
                if start <= t.ideal_deadline < end and not (roots_only and not t.is_root)
            ]

    def get_task_tree(self) -> list[TaskNode]:
        """
        Build the forest from the roots down, depth-first, siblings in creation order.

        A visited set bounds the walk even if the stored hierarchy is corrupt.
        """
        with self._lock:
            linked_from = self._reverse_links()
            forest: list[TaskNode] = []
            visited: set[str] = set()

            stack: list[tuple[str, list[TaskNode]]] = [
                (tid, forest) for tid in reversed(self._children[None])
            ]
            while stack:
                tid, siblings = stack.pop()
                if tid in visited:
                    logger.warning("Task hierarchy revisits %s; skipping", tid)
                    continue
                visited.add(tid)

                node = TaskNode(task=self._tasks[tid], linked_from=tuple(linked_from.get(tid, ())))
                siblings.append(node)
                for child_id in reversed(self._children.get(tid, ())):
                    stack.append((child_id, node.children))

            return forest
