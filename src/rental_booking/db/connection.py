"""Database connection helpers."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path

# Money columns are TEXT; Decimals are stored verbatim to keep two places exact.
sqlite3.register_adapter(Decimal, str)


def get_connection(database_path: Path | str) -> sqlite3.Connection:
    """Create a SQLite connection with foreign keys enabled.

    The connection may be shared between threads; callers serialize access
    (see ``SqliteBookingStorage``).
    """
    connection = sqlite3.connect(database_path, check_same_thread=False)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON;")
    return connection


@contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Provide a transaction scope for SQLite operations."""
    try:
        yield connection
    except Exception:
        connection.rollback()
        raise
    else:
        connection.commit()
