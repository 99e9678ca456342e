"""Repository for vehicle damage records."""

from __future__ import annotations

import sqlite3
from dataclasses import replace

from rental_booking.domain.models import DamageRecord
from rental_booking.logging_config import get_logger
from rental_booking.repositories.mappers import (
    damage_record_from_row,
    damage_record_to_record,
)
from rental_booking.services.errors import StorageFailureError


class DamageRepository:
    """Append-only data access for damage assessments."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(self, record: DamageRecord) -> DamageRecord:
        values = damage_record_to_record(record)
        try:
            cursor = self._connection.execute(
                """
                INSERT INTO vehicle_damages (
                    booking_id,
                    vehicle_registration,
                    description,
                    charges,
                    created_at,
                    created_by
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    values["booking_id"],
                    values["vehicle_registration"],
                    values["description"],
                    values["charges"],
                    values["created_at"],
                    values["created_by"],
                ),
            )
        except sqlite3.Error as exc:
            self._logger.exception(
                "Failed to record damage booking_id=%s", record.booking_id
            )
            raise StorageFailureError("Could not record damage details.") from exc
        return replace(record, id=int(cursor.lastrowid))

    def list_by_booking(self, booking_id: int) -> list[DamageRecord]:
        return self._list("booking_id = ?", booking_id)

    def list_by_vehicle(self, vehicle_registration: str) -> list[DamageRecord]:
        return self._list("vehicle_registration = ?", vehicle_registration)

    def _list(self, clause: str, value: object) -> list[DamageRecord]:
        try:
            rows = self._connection.execute(
                f"""
                SELECT *
                FROM vehicle_damages
                WHERE {clause}
                ORDER BY created_at DESC, id DESC
                """,
                (value,),
            ).fetchall()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to list damage records %s", value)
            raise StorageFailureError("Could not load damage history.") from exc
        return [damage_record_from_row(row) for row in rows]
