"""Repository for booking extension history."""

from __future__ import annotations

import sqlite3
from dataclasses import replace

from rental_booking.domain.models import Extension
from rental_booking.logging_config import get_logger
from rental_booking.repositories.mappers import extension_from_row, extension_to_record
from rental_booking.services.errors import StorageFailureError


class ExtensionRepository:
    """Append-only data access for booking extensions."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(self, extension: Extension) -> Extension:
        record = extension_to_record(extension)
        record.pop("id")
        columns = ", ".join(record)
        placeholders = ", ".join(["?"] * len(record))
        try:
            cursor = self._connection.execute(
                f"INSERT INTO booking_extensions ({columns}) VALUES ({placeholders})",
                list(record.values()),
            )
        except sqlite3.Error as exc:
            self._logger.exception(
                "Failed to log extension booking_id=%s", extension.booking_id
            )
            raise StorageFailureError("Could not log the extension.") from exc
        return replace(extension, id=int(cursor.lastrowid))

    def list_by_booking(self, booking_id: int) -> list[Extension]:
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM booking_extensions
                WHERE booking_id = ?
                ORDER BY created_at, id
                """,
                (booking_id,),
            ).fetchall()
        except sqlite3.Error as exc:
            self._logger.exception(
                "Failed to list extensions booking_id=%s", booking_id
            )
            raise StorageFailureError(
                f"Could not load extensions for booking {booking_id}."
            ) from exc
        return [extension_from_row(row) for row in rows]
