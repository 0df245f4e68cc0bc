# src/tactical_planner/storage/sqlite_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from ..core.clock import ensure_aware
from ..observations.models import Observation, ObservationStatus
from ..planning.task_models import Task

logger = logging.getLogger(__name__)


class SQLitePlannerStore:
    """
    SQLite snapshot store for tasks and observations.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    save() replaces the whole persisted state in one transaction; load()
    returns records in their original order. Timestamps are ISO-8601 text
    with microseconds and UTC offset, so they round-trip exactly.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "planner.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("PlannerStore ready db=%s", self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    required_time REAL NOT NULL DEFAULT 0,
                    ideal_deadline TEXT NOT NULL,
                    importance_level INTEGER NOT NULL DEFAULT 3,
                    parent_task_id TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_links (
                    from_id TEXT NOT NULL,
                    to_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    PRIMARY KEY (from_id, to_id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS observations (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'in_buffer',
                    tags TEXT NOT NULL DEFAULT '[]',
                    lesson_identified TEXT,
                    evaluation_point REAL,
                    converted_task_id TEXT
                )
                """
            )

            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("PlannerStore migration: added column %s.%s", table, name)

            # Columns added after the first schema version.
            add_col("tasks", "parent_task_id", "TEXT")
            add_col("observations", "tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("observations", "lesson_identified", "TEXT")
            add_col("observations", "evaluation_point", "REAL")
            add_col("observations", "converted_task_id", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_position ON tasks(position)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_links_from ON task_links(from_id, position)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _ts_to_str(value: datetime) -> str:
        return ensure_aware(value).isoformat(timespec="microseconds")

    @staticmethod
    def _str_to_ts(raw: str) -> datetime:
        return ensure_aware(datetime.fromisoformat(raw))

    @staticmethod
    def _tags_to_str(tags: Iterable[str]) -> str:
        return json.dumps(list(tags), ensure_ascii=False)

    @staticmethod
    def _str_to_tags(s: str | None) -> tuple[str, ...]:
        if not s:
            return ()
        try:
            val = json.loads(s)
        except json.JSONDecodeError:
            logger.warning("Malformed tags column %r; ignoring", s)
            return ()
        if not isinstance(val, list):
            return ()
        return tuple(str(t) for t in val)

    def _row_to_task(self, row: sqlite3.Row, links: list[str]) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"]),
            required_time=float(row["required_time"]),
            ideal_deadline=self._str_to_ts(row["ideal_deadline"]),
            # Range-checked by TaskRepository.restore().
            importance_level=row["importance_level"],
            created_at=self._str_to_ts(row["created_at"]),
            parent_task_id=row["parent_task_id"],
            links_to=tuple(links),
        )

    def _row_to_observation(self, row: sqlite3.Row) -> Observation:
        ep = row["evaluation_point"]
        return Observation(
            id=str(row["id"]),
            content=str(row["content"]),
            created_at=self._str_to_ts(row["created_at"]),
            status=ObservationStatus.from_db(row["status"]),
            tags=self._str_to_tags(row["tags"]),
            lesson_identified=row["lesson_identified"],
            evaluation_point=float(ep) if ep is not None else None,
            converted_task_id=row["converted_task_id"],
        )

    # ---- public API ----

    def save(self, tasks: Iterable[Task], observations: Iterable[Observation]) -> None:
        task_rows = []
        link_rows = []
        for pos, t in enumerate(tasks):
            task_rows.append(
                (
                    t.id,
                    pos,
                    t.title,
                    float(t.required_time),
                    self._ts_to_str(t.ideal_deadline),
                    int(t.importance_level),
                    t.parent_task_id,
                    self._ts_to_str(t.created_at),
                )
            )
            link_rows.extend((t.id, to_id, i) for i, to_id in enumerate(t.links_to))

        obs_rows = [
            (
                o.id,
                pos,
                o.content,
                self._ts_to_str(o.created_at),
                o.status.value,
                self._tags_to_str(o.tags),
                o.lesson_identified,
                o.evaluation_point,
                o.converted_task_id,
            )
            for pos, o in enumerate(observations)
        ]

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM task_links")
            cur.execute("DELETE FROM tasks")
            cur.execute("DELETE FROM observations")
            cur.executemany(
                """
                INSERT INTO tasks(
                    id, position, title, required_time, ideal_deadline,
                    importance_level, parent_task_id, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                task_rows,
            )
            cur.executemany(
                "INSERT INTO task_links(from_id, to_id, position) VALUES (?, ?, ?)",
                link_rows,
            )
            cur.executemany(
                """
                INSERT INTO observations(
                    id, position, content, created_at, status,
                    tags, lesson_identified, evaluation_point, converted_task_id
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                obs_rows,
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.debug(
            "PlannerStore saved tasks=%d links=%d observations=%d",
            len(task_rows),
            len(link_rows),
            len(obs_rows),
        )

    def load(self) -> tuple[list[Task], list[Observation]]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            links: dict[str, list[str]] = {}
            cur.execute("SELECT from_id, to_id FROM task_links ORDER BY from_id, position")
            for row in cur.fetchall():
                links.setdefault(row["from_id"], []).append(row["to_id"])

            cur.execute("SELECT * FROM tasks ORDER BY position ASC")
            tasks = [self._row_to_task(r, links.get(r["id"], [])) for r in cur.fetchall()]

            cur.execute("SELECT * FROM observations ORDER BY position ASC")
            observations = [self._row_to_observation(r) for r in cur.fetchall()]
        finally:
            conn.close()

        logger.debug("PlannerStore loaded tasks=%d observations=%d", len(tasks), len(observations))
        return tasks, observations
