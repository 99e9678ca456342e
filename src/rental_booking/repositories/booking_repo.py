"""Repository for booking persistence."""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Optional

from rental_booking.domain.models import Booking, BookingStatus, PaymentStatus
from rental_booking.logging_config import get_logger
from rental_booking.repositories.mappers import booking_from_row, booking_to_record
from rental_booking.services.errors import StaleBookingError, StorageFailureError
from rental_booking.utils.dates import to_iso


class BookingRepository:
    """Data access for bookings."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def get_by_id(self, booking_id: int) -> Optional[Booking]:
        try:
            row = self._connection.execute(
                "SELECT * FROM bookings WHERE id = ?",
                (booking_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to fetch booking id=%s", booking_id)
            raise StorageFailureError(f"Could not load booking {booking_id}.") from exc
        return booking_from_row(row) if row else None

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        try:
            row = self._connection.execute(
                "SELECT * FROM bookings WHERE booking_code = ?",
                (booking_code,),
            ).fetchone()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to fetch booking code=%s", booking_code)
            raise StorageFailureError(f"Could not load booking {booking_code}.") from exc
        return booking_from_row(row) if row else None

    def list_bookings(
        self,
        *,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        vehicle_registration: Optional[str] = None,
    ) -> list[Booking]:
        """List bookings filtered by status, payment status, vehicle and start date."""
        clauses: list[str] = []
        params: list[object] = []
        if status:
            clauses.append("status = ?")
            params.append(BookingStatus(status).value)
        if payment_status:
            clauses.append("payment_status = ?")
            params.append(PaymentStatus(payment_status).value)
        if start_date:
            clauses.append("start_date >= ?")
            params.append(to_iso(start_date))
        if end_date:
            clauses.append("start_date <= ?")
            params.append(to_iso(end_date))
        if vehicle_registration:
            clauses.append("vehicle_registration = ?")
            params.append(vehicle_registration)
        where_clause = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"""
            SELECT *
            FROM bookings
            {where_clause}
            ORDER BY start_date, pickup_time, id
        """
        try:
            rows = self._connection.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to list bookings")
            raise StorageFailureError("Could not list bookings.") from exc
        return [booking_from_row(row) for row in rows]

    def insert(self, booking: Booking) -> Booking:
        record = booking_to_record(booking)
        record.pop("id")
        columns = ", ".join(record)
        placeholders = ", ".join(["?"] * len(record))
        try:
            cursor = self._connection.execute(
                f"INSERT INTO bookings ({columns}) VALUES ({placeholders})",
                list(record.values()),
            )
        except sqlite3.Error as exc:
            self._logger.exception(
                "Failed to create booking code=%s", booking.booking_code
            )
            raise StorageFailureError(
                f"Could not save booking {booking.booking_code}."
            ) from exc
        booking.id = int(cursor.lastrowid)
        return booking

    def update(self, booking: Booking) -> Booking:
        """Write the booking if nobody else changed it since it was loaded."""
        record = booking_to_record(booking)
        booking_id = record.pop("id")
        expected_version = record.pop("version")
        assignments = ", ".join(f"{column} = ?" for column in record)
        try:
            cursor = self._connection.execute(
                f"""
                UPDATE bookings
                SET {assignments},
                    version = version + 1
                WHERE id = ?
                  AND version = ?
                """,
                [*record.values(), booking_id, expected_version],
            )
        except sqlite3.Error as exc:
            self._logger.exception("Failed to update booking id=%s", booking_id)
            raise StorageFailureError(
                f"Could not save booking {booking.booking_code}."
            ) from exc
        if cursor.rowcount == 0:
            raise StaleBookingError(
                f"Booking {booking.booking_code} was changed by someone else. "
                "Reload it and try again."
            )
        booking.version = expected_version + 1
        return booking

    def next_booking_code(self, prefix: str, digits: int) -> str:
        try:
            rows = self._connection.execute(
                "SELECT booking_code FROM bookings WHERE booking_code LIKE ?",
                (f"{prefix}%",),
            ).fetchall()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to read booking codes")
            raise StorageFailureError("Could not generate a booking code.") from exc
        highest = 0
        for row in rows:
            suffix = row["booking_code"][len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:0{digits}d}"
