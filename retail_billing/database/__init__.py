# retail_billing/database/__init__.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import logging
import sqlite3
from typing import Iterator, NoReturn

from ..config import DB_PATH
from ..errors import BackendUnavailable, BillingError, ValidationError
from . import schema as schema_module
from .seeders.default_data import seed as seed_default_data
from .versioning import ensure_version

_log = logging.getLogger(__name__)

MEMORY = ":memory:"


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - autocommit mode (isolation_level=None); writes go through transaction()
      - WAL mode for file databases
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures schema, version row and seed data are applied idempotently.
    """
    target = DB_PATH if db_path is None else db_path
    in_memory = str(target) == MEMORY
    if not in_memory:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = sqlite3.connect(str(target), isolation_level=None, timeout=5.0)
    except sqlite3.OperationalError as e:
        raise BackendUnavailable(f"Cannot open database {target}: {e}", original=e) from e

    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    if not in_memory:
        conn.execute("PRAGMA journal_mode = WAL;")

    # idempotent: CREATE IF NOT EXISTS / DROP TRIGGER IF EXISTS
    schema_module.apply_schema(conn)

    ensure_version(conn)

    # Seeders should be safe to run repeatedly (idempotent).
    seed_default_data(conn)
    return conn


def raise_mapped_error(e: sqlite3.Error) -> NoReturn:
    """
    Map a sqlite3 error to a domain error and raise it.

    Locking/IO problems are transient (BackendUnavailable, retryable);
    constraint and trigger failures are rejected input (ValidationError).
    """
    msg = str(e)
    if isinstance(e, sqlite3.IntegrityError):
        raise ValidationError(f"Rejected by database constraint: {msg}") from e
    if isinstance(e, sqlite3.OperationalError):
        _log.error("sqlite operational error: %s", msg)
        raise BackendUnavailable(f"Database unavailable: {msg}", original=e) from e
    raise BackendUnavailable(f"Database error: {msg}", original=e) from e


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    BEGIN IMMEDIATE ... COMMIT, or ROLLBACK on any exception.

    The write lock is taken up front so stock/balance re-checks inside the
    block cannot be invalidated by another writer. When the connection is
    already inside a transaction the block joins it; the outermost caller
    owns commit/rollback.
    """
    if conn.in_transaction:
        yield conn
        return

    try:
        conn.execute("BEGIN IMMEDIATE;")
    except sqlite3.OperationalError as e:
        raise_mapped_error(e)

    try:
        yield conn
    except BillingError:
        conn.execute("ROLLBACK;")
        raise
    except sqlite3.Error as e:
        conn.execute("ROLLBACK;")
        raise_mapped_error(e)
    except BaseException:
        conn.execute("ROLLBACK;")
        raise
    else:
        try:
            conn.execute("COMMIT;")
        except sqlite3.OperationalError as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK;")
            raise_mapped_error(e)


__all__ = [
    "MEMORY",
    "get_connection",
    "raise_mapped_error",
    "transaction",
]
