# src/tactical_planner/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) at the edges of the core.

The console and the bootstrap depend on these Protocols instead of the
concrete SQLite store, which keeps storage swappable and tests simple.
"""

from collections.abc import Iterable
from typing import Protocol

from ..observations.models import Observation
from ..planning.task_models import Task


class PlannerStore(Protocol):
    """Synchronous persistence of the whole planner state."""

    def save(self, tasks: Iterable[Task], observations: Iterable[Observation]) -> None: ...

    def load(self) -> tuple[list[Task], list[Observation]]: ...

