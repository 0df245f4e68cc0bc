# src/tactical_planner/logging_setup.py

"""
Logging for the planner process.

Three sinks:
- stderr: filtered so the REPL stays readable
- planner.log: everything at file_level, for debugging
- audit.log: the "tactical_planner.audit" channel only, one line per
  destructive change (task deletes, wipe-out, observation deletes and
  conversions), kept separately because those changes cannot be undone
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

AUDIT_LOGGER_NAME = "tactical_planner.audit"

_APP_PREFIX = "tactical_planner."
_QUIET_PREFIXES = ("tactical_planner.storage.", "tactical_planner.cli.bootstrap")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Own records pass, except save/load chatter (it runs after every change
    when autosave is on), which needs WARNING+. Audit lines stay in their
    file. Everything else, captured warnings included, needs ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == AUDIT_LOGGER_NAME:
            return False

        if name.startswith(_QUIET_PREFIXES):
            return record.levelno >= logging.WARNING

        if name.startswith(_APP_PREFIX):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/planner",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """Configure the root logger once, early. Returns the main log file path."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "planner.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    ah = logging.FileHandler(str(log_dir / "audit.log"), encoding="utf-8")
    ah.setLevel(logging.INFO)
    ah.setFormatter(logging.Formatter("%(asctime)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    ah.addFilter(logging.Filter(AUDIT_LOGGER_NAME))
    root.addHandler(ah)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
    return log_file
