# tests/fakes.py

from __future__ import annotations

import itertools
from datetime import datetime, timedelta


class ManualClock:
    """
    Deterministic clock for unit tests.

    - Callable like local_now()
    - Moves only when advance() is called
    """

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class SequentialIds:
    """Readable ids: t1, t2, ... (prefix configurable)."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self._prefix}{next(self._counter)}"
