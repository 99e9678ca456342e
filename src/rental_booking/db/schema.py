"""Database schema management."""

from __future__ import annotations

from pathlib import Path

from rental_booking.db.connection import get_connection
from rental_booking.db.migrations import apply_migrations, current_schema_version


def init_db(database_path: Path | str) -> int:
    """Create or upgrade the database file and return its schema version."""
    connection = get_connection(database_path)
    try:
        apply_migrations(connection)
        return current_schema_version(connection)
    finally:
        connection.close()
