"""
Tactical planner.

A personal task-planning core:
- planning/: task hierarchy, cross-links and the Realism Point metric
- observations/: time-delayed observation intake and conversion into tasks
- storage/: SQLite persistence behind a synchronous save/load interface
"""

__version__ = "0.1.0"
