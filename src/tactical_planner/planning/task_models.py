# src/tactical_planner/planning/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum


class ImportanceLevel(IntEnum):
    """
    Importance Level (IL). Lower is more important.

    - MUST: emergencies, finals, interviews
    - HIGH: long-term goals, projects
    - MEDIUM: side missions, hobbies
    - OPTIONAL: mood-dependent
    """

    MUST = 1
    HIGH = 2
    MEDIUM = 3
    OPTIONAL = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    required_time: float  # RT, hours
    ideal_deadline: datetime  # IDL
    importance_level: ImportanceLevel  # IL
    created_at: datetime

    parent_task_id: str | None = None
    links_to: tuple[str, ...] = ()

    @property
    def is_root(self) -> bool:
        return self.parent_task_id is None


@dataclass(slots=True)
class TaskNode:
    """A task with its subtree materialized, as returned by get_task_tree()."""

    task: Task
    children: list[TaskNode] = field(default_factory=list)
    linked_from: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.task.id
