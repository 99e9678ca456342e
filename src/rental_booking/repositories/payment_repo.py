"""Repository for payments persistence."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date
from decimal import Decimal

from rental_booking.domain.models import Payment
from rental_booking.logging_config import get_logger
from rental_booking.repositories.mappers import payment_from_row, payment_to_record
from rental_booking.services.errors import StorageFailureError
from rental_booking.utils.dates import to_iso
from rental_booking.utils.money import ZERO, to_money


class PaymentRepository:
    """Append-only data access for payments."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def list_by_booking(self, booking_id: int) -> list[Payment]:
        try:
            rows = self._connection.execute(
                """
                SELECT *
                FROM payments
                WHERE booking_id = ?
                ORDER BY created_at, id
                """,
                (booking_id,),
            ).fetchall()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to list payments booking_id=%s", booking_id)
            raise StorageFailureError(
                f"Could not load payments for booking {booking_id}."
            ) from exc
        return [payment_from_row(row) for row in rows]

    def create(self, payment: Payment) -> Payment:
        record = payment_to_record(payment)
        record.pop("id")
        try:
            cursor = self._connection.execute(
                """
                INSERT INTO payments (
                    booking_id,
                    amount,
                    payment_mode,
                    created_at,
                    created_by,
                    note
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record["booking_id"],
                    record["amount"],
                    record["payment_mode"],
                    record["created_at"],
                    record["created_by"],
                    record["note"],
                ),
            )
        except sqlite3.Error as exc:
            self._logger.exception(
                "Failed to create payment booking_id=%s", payment.booking_id
            )
            raise StorageFailureError("Could not record the payment.") from exc
        return replace(payment, id=int(cursor.lastrowid))

    def get_paid_total(self, booking_id: int) -> Decimal:
        # Summed in Python so TEXT amounts never pass through REAL arithmetic.
        try:
            rows = self._connection.execute(
                "SELECT amount FROM payments WHERE booking_id = ?",
                (booking_id,),
            ).fetchall()
        except sqlite3.Error as exc:
            self._logger.exception(
                "Failed to calculate paid total booking_id=%s", booking_id
            )
            raise StorageFailureError(
                f"Could not total payments for booking {booking_id}."
            ) from exc
        return sum((to_money(row["amount"]) for row in rows), ZERO)

    def get_total_received_by_period(self, start_date: date, end_date: date) -> Decimal:
        try:
            rows = self._connection.execute(
                """
                SELECT amount
                FROM payments
                WHERE date(substr(created_at, 1, 10)) >= ?
                  AND date(substr(created_at, 1, 10)) <= ?
                """,
                (to_iso(start_date), to_iso(end_date)),
            ).fetchall()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to calculate total received by period")
            raise StorageFailureError("Could not total received payments.") from exc
        return sum((to_money(row["amount"]) for row in rows), ZERO)
