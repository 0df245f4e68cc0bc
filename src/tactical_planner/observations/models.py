# src/tactical_planner/observations/models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class ObservationStatus(StrEnum):
    """
    Observation lifecycle status.

    Notes:
    - only IN_BUFFER and ANALYZED are ever stored.
    - READY_FOR_ANALYSIS is derived at read time from created_at and the buffer
      length; nothing advances it explicitly.
    """

    IN_BUFFER = "in_buffer"
    READY_FOR_ANALYSIS = "ready_for_analysis"
    ANALYZED = "analyzed"

    @classmethod
    def from_db(cls, raw: str | None) -> ObservationStatus:
        if raw == cls.ANALYZED.value:
            return cls.ANALYZED
        return cls.IN_BUFFER


@dataclass(frozen=True, slots=True)
class Observation:
    id: str
    content: str
    created_at: datetime
    status: ObservationStatus = ObservationStatus.IN_BUFFER

    # Set only by analysis / conversion.
    tags: tuple[str, ...] = ()
    lesson_identified: str | None = None
    evaluation_point: float | None = None  # EP
    converted_task_id: str | None = None
