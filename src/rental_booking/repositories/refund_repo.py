"""Repository for security deposit refunds."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from typing import Optional

from rental_booking.domain.models import DepositRefund
from rental_booking.logging_config import get_logger
from rental_booking.repositories.mappers import (
    deposit_refund_from_row,
    deposit_refund_to_record,
)
from rental_booking.services.errors import StorageFailureError


class DepositRefundRepository:
    """Data access for deposit refunds, one per booking."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._logger = get_logger(self.__class__.__name__)

    def create(self, refund: DepositRefund) -> DepositRefund:
        record = deposit_refund_to_record(refund)
        record.pop("id")
        columns = ", ".join(record)
        placeholders = ", ".join(["?"] * len(record))
        try:
            cursor = self._connection.execute(
                f"INSERT INTO security_deposit_refunds ({columns}) VALUES ({placeholders})",
                list(record.values()),
            )
        except sqlite3.Error as exc:
            self._logger.exception(
                "Failed to create refund booking_id=%s", refund.booking_id
            )
            raise StorageFailureError("Could not record the deposit refund.") from exc
        return replace(refund, id=int(cursor.lastrowid))

    def get_by_booking(self, booking_id: int) -> Optional[DepositRefund]:
        try:
            row = self._connection.execute(
                "SELECT * FROM security_deposit_refunds WHERE booking_id = ?",
                (booking_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            self._logger.exception("Failed to fetch refund booking_id=%s", booking_id)
            raise StorageFailureError(
                f"Could not load the refund for booking {booking_id}."
            ) from exc
        return deposit_refund_from_row(row) if row else None
