"""SQLite connection handling for the collaborator tables."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from replyline.config import Config, load_config

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

TABLES = ["contacts", "useremaillog", "followuplogs", "reply_log"]

# Columns later writer generations added: (table, column, type)
EXPECTED_COLUMNS = [
    ("useremaillog", "body", "TEXT"),
    ("useremaillog", "messageId", "TEXT"),
    ("useremaillog", "threadId", "TEXT"),
    ("followuplogs", "body", "TEXT"),
    ("followuplogs", "followup_count", "INTEGER DEFAULT 1"),
    ("reply_log", "contact_email", "TEXT"),
    ("reply_log", "recipient_email", "TEXT"),
    ("reply_log", "replied", "BOOLEAN DEFAULT TRUE"),
]


def _sqlite_path(config: Config | None, db_path: str | None) -> str:
    if db_path is not None:
        return db_path
    return (config or load_config()).storage.sqlite_path


def get_db(
    config: Config | None = None,
    db_path: str | None = None,
    check_same_thread: bool = True,
) -> sqlite3.Connection:
    """Connection with WAL journaling and ``sqlite3.Row`` rows.

    Pass ``check_same_thread=False`` when the connection is handed to worker
    threads (the API runs sync endpoints on a thread pool).
    """
    conn = sqlite3.connect(
        _sqlite_path(config, db_path), timeout=10, check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create any missing tables and indexes."""
    conn.executescript(_SCHEMA_PATH.read_text())


@contextmanager
def open_db(config: Config | None = None, check_same_thread: bool = True) -> Iterator[sqlite3.Connection]:
    """Initialized connection that is closed on exit."""
    conn = get_db(config, check_same_thread=check_same_thread)
    try:
        init_db(conn)
        yield conn
    finally:
        conn.close()


def reset_db(config: Config | None = None) -> sqlite3.Connection:
    """Delete the database file and its WAL sidecars, then recreate the schema."""
    db_path = Path(_sqlite_path(config, None))
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        path.unlink(missing_ok=True)

    conn = get_db(db_path=str(db_path))
    init_db(conn)
    return conn


def _existing_tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


def migrate_db(conn: sqlite3.Connection) -> list[str]:
    """Add columns an older writer never created. Returns the actions taken.

    Tables that do not exist yet are left for ``init_db``.
    """
    actions: list[str] = []
    tables = _existing_tables(conn)

    for table, column, col_type in EXPECTED_COLUMNS:
        if table not in tables:
            continue
        columns = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
        if column in columns:
            continue
        conn.execute(f'ALTER TABLE {table} ADD COLUMN "{column}" {col_type}')
        actions.append(f"Added {table}.{column} ({col_type})")

    if actions:
        conn.commit()
    return actions


def db_stats(conn: sqlite3.Connection) -> dict[str, int]:
    """Row count per table; -1 marks a missing table."""
    tables = _existing_tables(conn)
    stats = {}
    for table in TABLES:
        if table not in tables:
            stats[table] = -1
            continue
        stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    return stats
