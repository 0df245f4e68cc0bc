# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "PLANNER_APP_NAME": "App display name (default: planner).",
    "PLANNER_LOG_LEVEL": "Console logging level (default: INFO).",
    # Persistence
    "PLANNER_AUTOSAVE": "Save after every change (true/false, default: true).",
    # Paths (gitignored)
    "PLANNER_DATA_DIR": "Local data directory (default: .local/planner).",
    "PLANNER_DB_PATH": "SQLite path (default: <data_dir>/planner.sqlite3).",
    # Planning rules
    "PLANNER_BUFFER_DAYS": "Observation cooling-off period in days (default: 2).",
    "PLANNER_RP_SAFE": "Realism Point below this is safe (default: 0.8).",
    "PLANNER_RP_RISKY": "Realism Point from this on is overload (default: 1.0).",
    "PLANNER_AVAILABLE_TIME": "Default available hours per day (default: 8).",
}
