import logging
import sqlite3

from ..constants import SCHEMA_VERSION, TABLE_SCHEMA_VERSION

_log = logging.getLogger(__name__)


def _ensure_table(conn: sqlite3.Connection):
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}(
            id INTEGER PRIMARY KEY CHECK (id=1),
            version TEXT NOT NULL
        );
    """)


def get_current_version(conn: sqlite3.Connection) -> str | None:
    _ensure_table(conn)
    row = conn.execute(f"SELECT version FROM {TABLE_SCHEMA_VERSION} WHERE id=1;").fetchone()
    return row["version"] if row else None


def set_current_version(conn: sqlite3.Connection, version: str):
    _ensure_table(conn)
    conn.execute(
        f"""
        INSERT INTO {TABLE_SCHEMA_VERSION}(id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET version = excluded.version;
        """,
        (version,),
    )
    if conn.in_transaction:
        conn.commit()


def ensure_version(conn: sqlite3.Connection, expected: str = SCHEMA_VERSION) -> str:
    """Stamp a fresh database with `expected`; warn when an older file is opened."""
    current = get_current_version(conn)
    if current is None:
        set_current_version(conn, expected)
        return expected
    if current != expected:
        _log.warning("database schema version %s, code expects %s", current, expected)
    return current
