# src/tactical_planner/observations/bridge.py

from __future__ import annotations

import logging
from datetime import date, datetime

from ..planning.task_models import ImportanceLevel, Task
from ..planning.task_repo import TaskRepository
from .repo import ObservationRepository

logger = logging.getLogger(__name__)
audit = logging.getLogger("tactical_planner.audit")


class ObservationBridge:
    """
    Turns a ready observation into a task.

    Both repositories are locked for the whole conversion (tasks first, then
    observations), so readers see either no change or both changes. If marking
    the observation fails after the task was created, the task is removed again.
    """

    def __init__(self, tasks: TaskRepository, observations: ObservationRepository) -> None:
        self._tasks = tasks
        self._observations = observations

    def convert(
        self,
        observation_id: str,
        *,
        required_time: float,
        ideal_deadline: datetime | date,
        importance_level: int = ImportanceLevel.MEDIUM,
        title: str | None = None,
        parent_task_id: str | None = None,
        now: datetime | None = None,
    ) -> Task:
        """Create a task from the observation; title defaults to the observation content."""
        with self._tasks.locked(), self._observations.locked():
            obs = self._observations.require_ready(observation_id, now)

            task = self._tasks.create(
                title=obs.content if title is None else title,
                required_time=required_time,
                ideal_deadline=ideal_deadline,
                importance_level=importance_level,
                parent_task_id=parent_task_id,
            )
            try:
                self._observations.mark_converted(observation_id, task.id, now)
            except Exception:
                logger.exception(
                    "Conversion of observation %s failed; rolling back task %s",
                    observation_id,
                    task.id,
                )
                self._tasks.delete(task.id)
                raise

        logger.info("Observation %s converted to task %s", observation_id, task.id)
        audit.info("Observation %s converted to task %s", observation_id, task.id)
        return task
