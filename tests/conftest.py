# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from tactical_planner.cli.bootstrap import create_initial_state
from tactical_planner.core.state import AppState
from tactical_planner.observations.repo import ObservationRepository
from tactical_planner.planning.realism import RealismScheduler, RealismThresholds
from tactical_planner.planning.task_repo import TaskRepository
from tactical_planner.storage.sqlite_store import SQLitePlannerStore

from .fakes import ManualClock, SequentialIds

T0 = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture()
def tasks(clock: ManualClock) -> TaskRepository:
    return TaskRepository(clock=clock, id_factory=SequentialIds("t"))


@pytest.fixture()
def observations(clock: ManualClock) -> ObservationRepository:
    return ObservationRepository(buffer_days=2, clock=clock, id_factory=SequentialIds("o"))


@pytest.fixture()
def scheduler(tasks: TaskRepository, clock: ManualClock) -> RealismScheduler:
    return RealismScheduler(tasks, clock=clock)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than reading the environment,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="planner-test",
        log_level="DEBUG",
        autosave=False,
        data_dir=tmp_path,
        db_path=tmp_path / "planner.sqlite3",
        buffer_days=2,
        thresholds=RealismThresholds(),
        available_time=8.0,
    )


@pytest.fixture()
def state(settings: SimpleNamespace, clock: ManualClock) -> AppState:
    """
    AppState wired with a manual clock.

    NOTE: We keep the real SQLite store here because its correctness is part
    of what we want to test.
    """
    return create_initial_state(
        settings=settings,
        store=SQLitePlannerStore(settings.db_path),
        clock=clock,
    )
