# src/tactical_planner/planning/realism.py

"""
Realism Point (RP): the load factor of a day.

    RP = total required time of the day's tasks / available time

Zones (half-open, lower bound inclusive):
- SAFE:     RP < safe threshold (0.8)
- RISKY:    safe <= RP < risky threshold (1.0)
- OVERLOAD: RP >= risky threshold
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum

from ..core.clock import Clock, day_window, local_now, start_of_day
from .task_models import ImportanceLevel, Task
from .task_repo import TaskRepository

logger = logging.getLogger(__name__)
audit = logging.getLogger("tactical_planner.audit")

DEFAULT_SAFE_THRESHOLD = 0.8
DEFAULT_RISKY_THRESHOLD = 1.0


class Zone(StrEnum):
    SAFE = "safe"
    RISKY = "risky"
    OVERLOAD = "overload"


@dataclass(frozen=True, slots=True)
class RealismThresholds:
    safe: float = DEFAULT_SAFE_THRESHOLD
    risky: float = DEFAULT_RISKY_THRESHOLD


@dataclass(frozen=True, slots=True)
class RealismReport:
    day: datetime
    available_time: float
    total_required_time: float
    realism_point: float
    zone: Zone
    tasks: list[Task]


def realism_point(total_required_time: float, available_time: float) -> float:
    return total_required_time / available_time if available_time > 0 else 0.0


def classify(rp: float, thresholds: RealismThresholds = RealismThresholds()) -> Zone:
    if rp < thresholds.safe:
        return Zone.SAFE
    if rp < thresholds.risky:
        return Zone.RISKY
    return Zone.OVERLOAD


def sort_for_display(tasks: Iterable[Task]) -> list[Task]:
    """Importance ascending, then ideal deadline ascending. Stable."""
    return sorted(tasks, key=lambda t: (int(t.importance_level), t.ideal_deadline))


class RealismScheduler:
    """Derives the day's feasibility from a TaskRepository. Read-only except for wipe-out."""

    def __init__(
        self,
        repo: TaskRepository,
        *,
        thresholds: RealismThresholds = RealismThresholds(),
        clock: Clock = local_now,
    ) -> None:
        self._repo = repo
        self._thresholds = thresholds
        self._clock = clock

    @property
    def thresholds(self) -> RealismThresholds:
        return self._thresholds

    def today(self) -> date:
        return self._clock().date()

    def tasks_for_date(self, day: date | datetime, *, roots_only: bool = False) -> list[Task]:
        start, end = day_window(day)
        return self._repo.list_due_between(start, end, roots_only=roots_only)

    def tasks_for_today(self, *, roots_only: bool = False) -> list[Task]:
        return self.tasks_for_date(self._clock(), roots_only=roots_only)

    def compute_realism_point(
        self,
        day: date | datetime,
        available_time: float,
        *,
        roots_only: bool = False,
    ) -> float:
        total = sum(t.required_time for t in self.tasks_for_date(day, roots_only=roots_only))
        return realism_point(total, available_time)

    def classify(self, rp: float) -> Zone:
        return classify(rp, self._thresholds)

    def report(
        self,
        day: date | datetime,
        available_time: float,
        *,
        roots_only: bool = False,
    ) -> RealismReport:
        tasks = self.tasks_for_date(day, roots_only=roots_only)
        total = sum(t.required_time for t in tasks)
        rp = realism_point(total, available_time)
        return RealismReport(
            day=start_of_day(day),
            available_time=float(available_time),
            total_required_time=total,
            realism_point=rp,
            zone=self.classify(rp),
            tasks=sort_for_display(tasks),
        )

    def catastrophic_wipe_out(self) -> int:
        """
        CWA: delete every task that is not MUST. Irreversible.

        MUST tasks whose parent is wiped become roots. Returns the number removed.
        """
        removed = self._repo.delete_matching(
            lambda t: t.importance_level != ImportanceLevel.MUST
        )
        logger.warning("Catastrophic wipe-out removed %d task(s)", len(removed))
        audit.info("CWA removed %d task(s): %s", len(removed), " ".join(removed))
        return len(removed)
