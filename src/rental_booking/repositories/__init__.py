"""Repositories for data access."""

from rental_booking.repositories.booking_repo import BookingRepository
from rental_booking.repositories.damage_repo import DamageRepository
from rental_booking.repositories.extension_repo import ExtensionRepository
from rental_booking.repositories.mappers import (
    booking_from_row,
    booking_to_record,
    damage_record_from_row,
    deposit_refund_from_row,
    extension_from_row,
    payment_from_row,
    payment_to_record,
)
from rental_booking.repositories.payment_repo import PaymentRepository
from rental_booking.repositories.refund_repo import DepositRefundRepository
from rental_booking.repositories.storage import BookingStorage, SqliteBookingStorage

__all__ = [
    "booking_from_row",
    "booking_to_record",
    "BookingRepository",
    "BookingStorage",
    "damage_record_from_row",
    "DamageRepository",
    "deposit_refund_from_row",
    "DepositRefundRepository",
    "extension_from_row",
    "ExtensionRepository",
    "payment_from_row",
    "payment_to_record",
    "PaymentRepository",
    "SqliteBookingStorage",
]
