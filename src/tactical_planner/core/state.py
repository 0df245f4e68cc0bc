# src/tactical_planner/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..observations.bridge import ObservationBridge
from ..observations.repo import ObservationRepository
from ..planning.realism import RealismScheduler
from ..planning.task_repo import TaskRepository
from .ports import PlannerStore


@dataclass
class AppState:
    """
    Everything a connector needs, passed explicitly (no module-level singletons).

    `lock` serializes whole commands coming from connectors; the repositories
    additionally lock each individual operation.
    """

    settings: Any

    tasks: TaskRepository
    observations: ObservationRepository
    scheduler: RealismScheduler
    bridge: ObservationBridge

    store: PlannerStore | None = None
    available_time: float = 8.0

    lock: threading.RLock = field(default_factory=threading.RLock)
