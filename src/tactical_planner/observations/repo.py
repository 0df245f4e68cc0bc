# src/tactical_planner/observations/repo.py

from __future__ import annotations

import contextlib
import logging
import math
import threading
import uuid
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace
from datetime import datetime
from typing import Any

from ..core.clock import Clock, ensure_aware, local_now
from ..core.errors import NotFoundError, StateError, ValidationError
from .models import Observation, ObservationStatus

logger = logging.getLogger(__name__)
audit = logging.getLogger("tactical_planner.audit")

DEFAULT_BUFFER_DAYS = 2
_SECONDS_PER_DAY = 86400.0


def _new_id() -> str:
    return uuid.uuid4().hex


def _clean_tags(tags: Iterable[str]) -> tuple[str, ...]:
    if isinstance(tags, str):
        raise ValidationError("tags must be a sequence of strings, not a single string")
    out: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError(f"tag must be a string, got {tag!r}")
        t = tag.strip()
        if t:
            out.append(t)
    return tuple(out)


def _clean_evaluation_point(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"evaluation point must be a finite number, got {value!r}")
    return float(value)


class ObservationRepository:
    """
    In-memory observation store with a mandatory cooling-off buffer.

    An observation waits buffer_days after capture before it can be analyzed
    or converted. Readiness is computed from created_at and the injected "now";
    there is no timer and no stored "ready" state.
    """

    def __init__(
        self,
        *,
        buffer_days: int = DEFAULT_BUFFER_DAYS,
        clock: Clock = local_now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        if buffer_days < 0:
            raise ValueError("buffer_days must be >= 0")
        self._lock = threading.RLock()
        self._buffer_days = int(buffer_days)
        self._clock = clock
        self._id_factory = id_factory
        self._observations: dict[str, Observation] = {}

    @contextlib.contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock:
            yield

    @property
    def buffer_days(self) -> int:
        return self._buffer_days

    def _now(self, now: datetime | None) -> datetime:
        return ensure_aware(now if now is not None else self._clock())

    def _require(self, observation_id: str) -> Observation:
        obs = self._observations.get(observation_id)
        if obs is None:
            raise NotFoundError("observation", observation_id)
        return obs

    # ---- projections ----

    def days_remaining(self, observation: Observation, now: datetime | None = None) -> int:
        elapsed = (self._now(now) - observation.created_at).total_seconds() / _SECONDS_PER_DAY
        # A "now" before capture (clock skew) counts as no time elapsed.
        return min(self._buffer_days, max(0, self._buffer_days - math.floor(elapsed)))

    def effective_status(
        self, observation: Observation, now: datetime | None = None
    ) -> ObservationStatus:
        if observation.status == ObservationStatus.ANALYZED:
            return ObservationStatus.ANALYZED
        if self.days_remaining(observation, now) > 0:
            return ObservationStatus.IN_BUFFER
        return ObservationStatus.READY_FOR_ANALYSIS

    def require_ready(self, observation_id: str, now: datetime | None = None) -> Observation:
        """Return the observation if it may be analyzed/converted, else raise."""
        with self._lock:
            obs = self._require(observation_id)
            status = self.effective_status(obs, now)
            if status == ObservationStatus.ANALYZED:
                raise StateError(f"observation {observation_id} is already analyzed")
            if status == ObservationStatus.IN_BUFFER:
                raise StateError(
                    f"observation {observation_id} is still in buffer "
                    f"({self.days_remaining(obs, now)} day(s) remaining)"
                )
            return obs

    # ---- commands ----

    def capture(self, content: str) -> Observation:
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("observation content is required")

        with self._lock:
            obs_id = self._id_factory()
            if obs_id in self._observations:
                raise ValidationError(f"id factory produced a duplicate id: {obs_id}")
            obs = Observation(id=obs_id, content=content, created_at=self._now(None))
            self._observations[obs_id] = obs

        logger.info("Observation captured id=%s buffer_days=%d", obs_id, self._buffer_days)
        return obs

    def analyze(
        self,
        observation_id: str,
        *,
        tags: Iterable[str] = (),
        lesson_identified: str | None = None,
        evaluation_point: float | None = None,
        now: datetime | None = None,
    ) -> Observation:
        clean_tags = _clean_tags(tags)
        ep = _clean_evaluation_point(evaluation_point)
        if lesson_identified is not None and not isinstance(lesson_identified, str):
            raise ValidationError("lesson identified must be text")
        lesson = (lesson_identified or "").strip() or None

        with self._lock:
            obs = self.require_ready(observation_id, now)
            analyzed = replace(
                obs,
                status=ObservationStatus.ANALYZED,
                tags=clean_tags,
                lesson_identified=lesson,
                evaluation_point=ep,
            )
            self._observations[observation_id] = analyzed

        logger.info("Observation analyzed id=%s tags=%d ep=%s", observation_id, len(clean_tags), ep)
        return analyzed

    def mark_converted(
        self, observation_id: str, task_id: str, now: datetime | None = None
    ) -> Observation:
        """Terminal transition used by the observation bridge."""
        with self._lock:
            obs = self.require_ready(observation_id, now)
            converted = replace(
                obs, status=ObservationStatus.ANALYZED, converted_task_id=task_id
            )
            self._observations[observation_id] = converted
        return converted

    def delete(self, observation_id: str) -> None:
        with self._lock:
            self._require(observation_id)
            del self._observations[observation_id]
        logger.info("Observation deleted id=%s", observation_id)
        audit.info("Observation deleted %s", observation_id)

    def restore(self, observations: Iterable[Observation]) -> None:
        loaded: dict[str, Observation] = {}
        for obs in observations:
            if obs.id in loaded:
                raise ValidationError(f"duplicate observation id in saved data: {obs.id}")
            if obs.status == ObservationStatus.READY_FOR_ANALYSIS:
                # Never stored; treat a legacy value as still buffered.
                obs = replace(obs, status=ObservationStatus.IN_BUFFER)
            loaded[obs.id] = replace(obs, created_at=ensure_aware(obs.created_at))

        with self._lock:
            self._observations = loaded
        logger.info("ObservationRepository restored total=%d", len(loaded))

    # ---- queries ----

    def get_by_id(self, observation_id: str) -> Observation | None:
        with self._lock:
            return self._observations.get(observation_id)

    def count(self) -> int:
        with self._lock:
            return len(self._observations)

    def list_all(self) -> list[Observation]:
        with self._lock:
            return list(self._observations.values())

    def _with_status(self, status: ObservationStatus, now: datetime | None) -> list[Observation]:
        at = self._now(now)
        with self._lock:
            return [o for o in self._observations.values() if self.effective_status(o, at) == status]

    def get_in_buffer(self, now: datetime | None = None) -> list[Observation]:
        return self._with_status(ObservationStatus.IN_BUFFER, now)

    def get_ready_for_analysis(self, now: datetime | None = None) -> list[Observation]:
        return self._with_status(ObservationStatus.READY_FOR_ANALYSIS, now)

    def get_analyzed(self) -> list[Observation]:
        with self._lock:
            return [
                o for o in self._observations.values() if o.status == ObservationStatus.ANALYZED
            ]
