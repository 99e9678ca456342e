"""Storage collaborator used by the booking services."""

from __future__ import annotations

import functools
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Protocol, TypeVar

from rental_booking.config import BOOKING_CODE_DIGITS, BOOKING_CODE_PREFIX
from rental_booking.db.connection import transaction
from rental_booking.domain.models import (
    Booking,
    BookingStatus,
    DamageRecord,
    DepositRefund,
    Extension,
    Payment,
    PaymentStatus,
)
from rental_booking.logging_config import get_logger
from rental_booking.repositories.booking_repo import BookingRepository
from rental_booking.repositories.damage_repo import DamageRepository
from rental_booking.repositories.extension_repo import ExtensionRepository
from rental_booking.repositories.payment_repo import PaymentRepository
from rental_booking.repositories.refund_repo import DepositRefundRepository
from rental_booking.services.errors import NotFoundError, StorageFailureError

T = TypeVar("T")


class BookingStorage(Protocol):
    """Operations the booking services need from persistence."""

    def unit_of_work(self) -> AbstractContextManager[None]: ...

    def load_booking(self, booking_id: int) -> Booking: ...

    def find_booking_by_code(self, booking_code: str) -> Optional[Booking]: ...

    def list_bookings(
        self,
        *,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        vehicle_registration: Optional[str] = None,
    ) -> list[Booking]: ...

    def next_booking_code(self) -> str: ...

    def insert_booking(self, booking: Booking) -> Booking: ...

    def save_booking(self, booking: Booking) -> Booking: ...

    def append_payment(self, payment: Payment) -> Payment: ...

    def list_payments(self, booking_id: int) -> list[Payment]: ...

    def paid_total(self, booking_id: int) -> Decimal: ...

    def total_received(self, start_date: date, end_date: date) -> Decimal: ...

    def append_extension(self, extension: Extension) -> Extension: ...

    def list_extensions(self, booking_id: int) -> list[Extension]: ...

    def append_damage_record(self, record: DamageRecord) -> DamageRecord: ...

    def list_damage_records(self, booking_id: int) -> list[DamageRecord]: ...

    def list_vehicle_damages(self, vehicle_registration: str) -> list[DamageRecord]: ...

    def append_deposit_refund(self, refund: DepositRefund) -> DepositRefund: ...

    def find_deposit_refund(self, booking_id: int) -> Optional[DepositRefund]: ...


def _serialized(method: Callable[..., T]) -> Callable[..., T]:
    """Run a storage call while holding the storage guard."""

    @functools.wraps(method)
    def wrapper(self: "SqliteBookingStorage", *args: Any, **kwargs: Any) -> T:
        with self._guard:
            return method(self, *args, **kwargs)

    return wrapper


class SqliteBookingStorage:
    """SQLite-backed storage; every unit of work is one transaction.

    The connection is shared by every thread using this storage. A unit of
    work holds the storage guard from its first statement to its commit, so
    other threads neither interleave writes with it nor read its uncommitted
    rows.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        *,
        code_prefix: str = BOOKING_CODE_PREFIX,
        code_digits: int = BOOKING_CODE_DIGITS,
    ) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._code_prefix = code_prefix
        self._code_digits = code_digits
        self._guard = threading.RLock()
        self._local = threading.local()
        self._bookings = BookingRepository(connection)
        self._payments = PaymentRepository(connection)
        self._extensions = ExtensionRepository(connection)
        self._damages = DamageRepository(connection)
        self._refunds = DepositRefundRepository(connection)
        self._logger = get_logger(self.__class__.__name__)

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        """Group writes; the outermost scope on each thread commits or rolls back."""
        with self._guard:
            depth = getattr(self._local, "depth", 0)
            if depth:
                self._local.depth = depth + 1
                try:
                    yield
                finally:
                    self._local.depth = depth
                return
            self._local.depth = 1
            try:
                with transaction(self._connection):
                    yield
            except sqlite3.Error as exc:
                self._logger.exception("Unit of work failed")
                raise StorageFailureError("The booking could not be saved.") from exc
            finally:
                self._local.depth = 0

    @_serialized
    def load_booking(self, booking_id: int) -> Booking:
        booking = self._bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    @_serialized
    def find_booking_by_code(self, booking_code: str) -> Optional[Booking]:
        return self._bookings.get_by_code(booking_code)

    @_serialized
    def list_bookings(
        self,
        *,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        vehicle_registration: Optional[str] = None,
    ) -> list[Booking]:
        return self._bookings.list_bookings(
            status=status,
            payment_status=payment_status,
            start_date=start_date,
            end_date=end_date,
            vehicle_registration=vehicle_registration,
        )

    @_serialized
    def next_booking_code(self) -> str:
        return self._bookings.next_booking_code(self._code_prefix, self._code_digits)

    @_serialized
    def insert_booking(self, booking: Booking) -> Booking:
        return self._bookings.insert(booking)

    @_serialized
    def save_booking(self, booking: Booking) -> Booking:
        return self._bookings.update(booking)

    @_serialized
    def append_payment(self, payment: Payment) -> Payment:
        return self._payments.create(payment)

    @_serialized
    def list_payments(self, booking_id: int) -> list[Payment]:
        return self._payments.list_by_booking(booking_id)

    @_serialized
    def paid_total(self, booking_id: int) -> Decimal:
        return self._payments.get_paid_total(booking_id)

    @_serialized
    def total_received(self, start_date: date, end_date: date) -> Decimal:
        return self._payments.get_total_received_by_period(start_date, end_date)

    @_serialized
    def append_extension(self, extension: Extension) -> Extension:
        return self._extensions.create(extension)

    @_serialized
    def list_extensions(self, booking_id: int) -> list[Extension]:
        return self._extensions.list_by_booking(booking_id)

    @_serialized
    def append_damage_record(self, record: DamageRecord) -> DamageRecord:
        return self._damages.create(record)

    @_serialized
    def list_damage_records(self, booking_id: int) -> list[DamageRecord]:
        return self._damages.list_by_booking(booking_id)

    @_serialized
    def list_vehicle_damages(self, vehicle_registration: str) -> list[DamageRecord]:
        return self._damages.list_by_vehicle(vehicle_registration)

    @_serialized
    def append_deposit_refund(self, refund: DepositRefund) -> DepositRefund:
        return self._refunds.create(refund)

    @_serialized
    def find_deposit_refund(self, booking_id: int) -> Optional[DepositRefund]:
        return self._refunds.get_by_booking(booking_id)
