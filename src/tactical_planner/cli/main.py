# src/tactical_planner/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the saved planner state, then runs
the console REPL in the main thread. State is saved again on shutdown,
including shutdown by Ctrl+C or SIGTERM.
"""

from __future__ import annotations

import logging
import signal
import sqlite3

from ..cli.bootstrap import create_initial_state, load_state, save_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import PlannerError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        save_state(state)
    except (sqlite3.Error, OSError):
        logger.exception("Failed to save planner state.")


def _interrupt_on_signal(signum, _frame) -> None:
    # Unblocks input() the same way Ctrl+C does.
    logger.info("Signal %s received, shutting down...", signum)
    raise KeyboardInterrupt


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)
    try:
        load_state(state)
    except (sqlite3.Error, PlannerError):
        # Keep the broken file untouched; run with an empty planner instead.
        logger.exception("Failed to load planner state from %s", settings.db_path)
        state.store = None

    try:
        signal.signal(signal.SIGTERM, _interrupt_on_signal)
    except (ValueError, OSError, AttributeError):
        # Some platforms may not support SIGTERM.
        pass

    try:
        run_console_loop(state)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
