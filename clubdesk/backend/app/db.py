"""
Database connection and initialization helpers.
This file is the single source of truth for opening the SQLite connection.
"""

import logging
import os
import sqlite3
from typing import Generator

from .core.config import DB_PATH

logger = logging.getLogger(__name__)


def get_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(
        str(DB_PATH),
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    return conn


def get_db_conn() -> Generator[sqlite3.Connection, None, None]:
    """
    Dependency for FastAPI to get database connection.
    """
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def get_db_path() -> str:
    """Get the database file path."""
    return str(DB_PATH)


def _reset_database_if_requested() -> None:
    """
    If FORCE_DB_RESET=1, delete the database file (or drop the table when the
    file cannot be removed, e.g. on a mounted volume).
    """
    flag = os.environ.get("FORCE_DB_RESET", "").strip()
    if flag != "1":
        return

    try:
        if DB_PATH.exists():
            DB_PATH.unlink()
            logger.warning("FORCE_DB_RESET: removed %s", DB_PATH)
            return
    except OSError:
        logger.warning("FORCE_DB_RESET: could not remove %s, dropping tables", DB_PATH)

    conn = get_connection()
    try:
        conn.execute("DROP TABLE IF EXISTS schedules")
        conn.commit()
    finally:
        conn.close()


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the schedules table and indexes on an open connection."""
    cur = conn.cursor()

    cur.execute("""
        CREATE TABLE IF NOT EXISTS schedules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            date TEXT NOT NULL,
            start_hour INTEGER,
            start_minute INTEGER,
            end_hour INTEGER,
            end_minute INTEGER,
            gather_hour INTEGER,
            gather_minute INTEGER,
            venue TEXT NOT NULL,
            notes TEXT,
            category_id TEXT,
            category_ids TEXT,
            student_can_register INTEGER NOT NULL DEFAULT 1,
            recurrence_rule TEXT NOT NULL DEFAULT 'none',
            recurrence_interval INTEGER NOT NULL DEFAULT 1,
            recurrence_end_date TEXT,
            parent_schedule_id INTEGER,
            series_id INTEGER
        )
    """)

    # --- Migrations ---
    # Older databases only carry parent_schedule_id; backfill the series key.
    cols = [r[1] for r in cur.execute("PRAGMA table_info('schedules')").fetchall()]
    if "series_id" not in cols:
        cur.execute("ALTER TABLE schedules ADD COLUMN series_id INTEGER")
        cur.execute(
            "UPDATE schedules SET series_id = COALESCE(parent_schedule_id, id) WHERE series_id IS NULL"
        )
        logger.info("Migrated schedules: added series_id")

    cur.execute("CREATE INDEX IF NOT EXISTS idx_schedules_date ON schedules (date)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_schedules_series ON schedules (series_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_schedules_parent ON schedules (parent_schedule_id)")
    conn.commit()


def initialise_database() -> None:
    """Create database tables if they don't exist."""
    _reset_database_if_requested()
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection()
    try:
        create_schema(conn)
    finally:
        conn.close()
