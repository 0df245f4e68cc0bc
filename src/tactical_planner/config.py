# src/tactical_planner/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Values are read once at startup and treated as immutable afterwards.
- Malformed values fall back to defaults instead of failing startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from .observations.repo import DEFAULT_BUFFER_DAYS
from .planning.realism import DEFAULT_RISKY_THRESHOLD, DEFAULT_SAFE_THRESHOLD, RealismThresholds

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLANNER"

DEFAULT_AVAILABLE_TIME = 8.0


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Persistence ----
    autosave: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Planning rules ----
    buffer_days: int
    rp_safe: float
    rp_risky: float
    available_time: float

    @property
    def thresholds(self) -> RealismThresholds:
        return RealismThresholds(safe=self.rp_safe, risky=self.rp_risky)

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "planner").strip() or "planner"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        autosave = _env_bool(_k("AUTOSAVE"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/planner"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "planner.sqlite3")

        buffer_days = _env_int(_k("BUFFER_DAYS"), DEFAULT_BUFFER_DAYS)
        if buffer_days < 0:
            logger.warning(
                "Negative %s=%d; using %d", _k("BUFFER_DAYS"), buffer_days, DEFAULT_BUFFER_DAYS
            )
            buffer_days = DEFAULT_BUFFER_DAYS

        rp_safe = _env_float(_k("RP_SAFE"), DEFAULT_SAFE_THRESHOLD)
        rp_risky = _env_float(_k("RP_RISKY"), DEFAULT_RISKY_THRESHOLD)
        if not 0 < rp_safe < rp_risky:
            logger.warning(
                "Inconsistent RP thresholds safe=%s risky=%s; using defaults", rp_safe, rp_risky
            )
            rp_safe, rp_risky = DEFAULT_SAFE_THRESHOLD, DEFAULT_RISKY_THRESHOLD

        available_time = max(0.0, _env_float(_k("AVAILABLE_TIME"), DEFAULT_AVAILABLE_TIME))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            autosave=autosave,
            data_dir=data_dir,
            db_path=db_path,
            buffer_days=buffer_days,
            rp_safe=rp_safe,
            rp_risky=rp_risky,
            available_time=available_time,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Local .env never overrides variables already set in the environment.
    load_dotenv(override=False)
    return Settings.from_env()
