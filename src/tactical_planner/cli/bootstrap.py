# src/tactical_planner/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires repositories, scheduler, bridge and store into AppState,
- loads and saves the planner state through the store.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import Clock, local_now
from ..core.ports import PlannerStore
from ..core.state import AppState
from ..observations.bridge import ObservationBridge
from ..observations.repo import ObservationRepository
from ..planning.realism import RealismScheduler
from ..planning.task_repo import TaskRepository
from ..storage.sqlite_store import SQLitePlannerStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    store: PlannerStore | None = None,
    clock: Clock = local_now,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings, store and clock injectable makes the app easier to test.
    If settings is None, falls back to get_settings(); if store is None, a
    SQLite store at settings.db_path is used.
    """
    if settings is None:
        settings = get_settings()

    if store is None:
        _ensure_local_dirs(settings)
        store = SQLitePlannerStore(settings.db_path)

    tasks = TaskRepository(clock=clock)
    observations = ObservationRepository(buffer_days=settings.buffer_days, clock=clock)

    return AppState(
        settings=settings,
        tasks=tasks,
        observations=observations,
        scheduler=RealismScheduler(tasks, thresholds=settings.thresholds, clock=clock),
        bridge=ObservationBridge(tasks, observations),
        store=store,
        available_time=float(settings.available_time),
    )


def load_state(state: AppState) -> None:
    """Replace repository contents with what the store holds."""
    if state.store is None:
        return
    tasks, observations = state.store.load()
    with state.lock:
        state.tasks.restore(tasks)
        state.observations.restore(observations)
    logger.info("Loaded planner state: %d tasks, %d observations", len(tasks), len(observations))


def save_state(state: AppState) -> None:
    if state.store is None:
        return
    with state.lock, state.tasks.locked(), state.observations.locked():
        tasks = state.tasks.list_all()
        observations = state.observations.list_all()
    state.store.save(tasks, observations)
    logger.info("Saved planner state: %d tasks, %d observations", len(tasks), len(observations))
