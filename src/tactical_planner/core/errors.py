# src/tactical_planner/core/errors.py

"""Error taxonomy shared by the repositories, the scheduler and the bridge."""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for every error raised by the planning core."""


class ValidationError(PlannerError):
    """Malformed input: negative time, bad importance level, empty text, self-link."""


class NotFoundError(PlannerError):
    """An id referenced by a command does not exist."""

    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident


class CycleError(PlannerError):
    """Re-parenting would make a task its own ancestor."""


class StateError(PlannerError):
    """The entity's current state forbids the operation."""
