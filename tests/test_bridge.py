# tests/test_bridge.py

from __future__ import annotations

from datetime import timedelta

import pytest

from tactical_planner.core.errors import NotFoundError, StateError, ValidationError
from tactical_planner.observations.bridge import ObservationBridge
from tactical_planner.observations.models import ObservationStatus
from tactical_planner.observations.repo import ObservationRepository
from tactical_planner.planning.task_models import ImportanceLevel
from tactical_planner.planning.task_repo import TaskRepository

from .conftest import T0

READY = T0 + timedelta(days=2)


@pytest.fixture()
def bridge(tasks: TaskRepository, observations: ObservationRepository) -> ObservationBridge:
    return ObservationBridge(tasks, observations)


def test_convert_creates_one_task_and_links_observation(
    bridge: ObservationBridge, tasks: TaskRepository, observations: ObservationRepository
) -> None:
    obs = observations.capture("Start a running habit")

    task = bridge.convert(
        obs.id,
        required_time=1.5,
        ideal_deadline=T0 + timedelta(days=3),
        importance_level=ImportanceLevel.HIGH,
        now=READY,
    )

    assert tasks.count() == 1
    assert task.title == "Start a running habit"
    assert task.importance_level is ImportanceLevel.HIGH

    converted = observations.get_by_id(obs.id)
    assert converted.status is ObservationStatus.ANALYZED
    assert converted.converted_task_id == task.id


def test_convert_with_explicit_title_and_parent(
    bridge: ObservationBridge, tasks: TaskRepository, observations: ObservationRepository
) -> None:
    parent = tasks.create(title="Fitness", required_time=0, ideal_deadline=T0)
    obs = observations.capture("run")

    task = bridge.convert(
        obs.id,
        title="Run 5k",
        required_time=1,
        ideal_deadline=T0,
        parent_task_id=parent.id,
        now=READY,
    )

    assert task.title == "Run 5k"
    assert tasks.get_subtasks(parent.id) == [task]


def test_convert_in_buffer_fails_without_side_effects(
    bridge: ObservationBridge, tasks: TaskRepository, observations: ObservationRepository
) -> None:
    obs = observations.capture("x")

    with pytest.raises(StateError):
        bridge.convert(obs.id, required_time=1, ideal_deadline=T0, now=T0 + timedelta(days=1))

    assert tasks.count() == 0
    assert observations.get_by_id(obs.id) == obs


def test_convert_twice_fails(
    bridge: ObservationBridge, tasks: TaskRepository, observations: ObservationRepository
) -> None:
    obs = observations.capture("x")
    bridge.convert(obs.id, required_time=1, ideal_deadline=T0, now=READY)

    with pytest.raises(StateError):
        bridge.convert(obs.id, required_time=1, ideal_deadline=T0, now=READY)
    assert tasks.count() == 1


def test_convert_unknown_observation(bridge: ObservationBridge) -> None:
    with pytest.raises(NotFoundError):
        bridge.convert("missing", required_time=1, ideal_deadline=T0, now=READY)


def test_invalid_task_spec_leaves_observation_untouched(
    bridge: ObservationBridge, tasks: TaskRepository, observations: ObservationRepository
) -> None:
    obs = observations.capture("x")

    with pytest.raises(ValidationError):
        bridge.convert(obs.id, required_time=-2, ideal_deadline=T0, now=READY)

    assert tasks.count() == 0
    assert observations.get_by_id(obs.id) == obs
    assert observations.get_ready_for_analysis(READY) == [obs]


def test_failure_after_task_creation_rolls_back(
    bridge: ObservationBridge,
    tasks: TaskRepository,
    observations: ObservationRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    obs = observations.capture("x")

    def boom(*args, **kwargs):
        raise RuntimeError("storage hiccup")

    monkeypatch.setattr(observations, "mark_converted", boom)

    with pytest.raises(RuntimeError):
        bridge.convert(obs.id, required_time=1, ideal_deadline=T0, now=READY)

    assert tasks.count() == 0
    assert observations.get_by_id(obs.id) == obs
