"""Domain models for the booking engine."""

from rental_booking.domain.models import (
    Booking,
    BookingStatus,
    DamageRecord,
    DepositRefund,
    Extension,
    OutstationDetails,
    Payment,
    PaymentMode,
    PaymentStatus,
    RentalPurpose,
    derive_payment_status,
)

__all__ = [
    "Booking",
    "BookingStatus",
    "DamageRecord",
    "DepositRefund",
    "derive_payment_status",
    "Extension",
    "OutstationDetails",
    "Payment",
    "PaymentMode",
    "PaymentStatus",
    "RentalPurpose",
]
