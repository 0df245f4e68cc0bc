# src/tactical_planner/diamond.py

"""
Diamond System: entity leveling by a 0..100 score.

A standalone lookup. Each level covers [min, max) except level 1, which
also includes 100.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .core.errors import ValidationError


@dataclass(frozen=True, slots=True)
class EntityLevel:
    id: int
    min: float
    max: float
    label: str

    def contains(self, score: float) -> bool:
        return self.min <= score < self.max or (self.max == 100 and score == 100)


ENTITY_LEVELS: tuple[EntityLevel, ...] = (
    EntityLevel(1, 90, 100, "Critical"),
    EntityLevel(2, 75, 90, "Very Important"),
    EntityLevel(3, 50, 75, "Positive"),
    EntityLevel(4, 20, 50, "Neutral"),
    EntityLevel(5, 0, 20, "Hostile"),
)


def level_for_score(score: float) -> EntityLevel:
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise ValidationError(f"score must be a number, got {score!r}")
    for level in ENTITY_LEVELS:
        if level.contains(score):
            return level
    raise ValidationError(f"score must be within 0..100, got {score}")


def level_by_id(level_id: int) -> EntityLevel:
    for level in ENTITY_LEVELS:
        if level.id == level_id:
            return level
    raise ValidationError(f"unknown entity level: {level_id}")
