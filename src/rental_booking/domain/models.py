"""Domain dataclasses, enums and the booking state machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from rental_booking.config import MAX_RENTAL_DAYS
from rental_booking.services.errors import (
    BookingClosedError,
    BookingValidationError,
    InvalidAmountError,
    InvalidStateTransitionError,
    OverpaymentError,
)
from rental_booking.utils.money import ZERO, format_currency


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_USE = "in_use"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    FULL = "full"


class PaymentMode(str, Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


class RentalPurpose(str, Enum):
    LOCAL = "local"
    OUTSTATION = "outstation"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_USE, BookingStatus.CANCELLED}
    ),
    BookingStatus.IN_USE: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def derive_payment_status(paid_amount: Decimal, total_amount: Decimal) -> PaymentStatus:
    """Classify how much of the total has been paid."""
    if paid_amount <= 0:
        return PaymentStatus.PENDING
    if paid_amount >= total_amount:
        return PaymentStatus.FULL
    return PaymentStatus.PARTIAL


def validate_rental_window(
    start_date: date, end_date: date, max_days: int = MAX_RENTAL_DAYS
) -> None:
    if end_date <= start_date:
        raise BookingValidationError("End date must be after the start date.")
    if end_date > start_date + timedelta(days=max_days):
        raise BookingValidationError(
            f"Maximum booking duration is {max_days} days from the start date."
        )


@dataclass(slots=True)
class OutstationDetails:
    destination: str
    estimated_kilometers: int
    start_odometer: int
    end_odometer: Optional[int] = None

    @property
    def distance_travelled(self) -> Optional[int]:
        if self.end_odometer is None:
            return None
        return self.end_odometer - self.start_odometer


@dataclass(slots=True)
class Booking:
    """Booking aggregate.

    ``total_amount`` and ``payment_status`` are computed from the stored
    amounts on every read, so neither can drift from its inputs. All
    mutators refuse to touch a completed or cancelled booking.
    """

    id: Optional[int]
    booking_code: str
    customer_id: str
    vehicle_registration: str
    start_date: date
    end_date: date
    pickup_time: time
    dropoff_time: time
    booking_amount: Decimal
    security_deposit_amount: Decimal
    damage_charges: Decimal = ZERO
    late_fee: Decimal = ZERO
    extension_fee: Decimal = ZERO
    paid_amount: Decimal = ZERO
    payment_mode: PaymentMode = PaymentMode.CASH
    status: BookingStatus = BookingStatus.PENDING
    rental_purpose: RentalPurpose = RentalPurpose.LOCAL
    outstation_details: Optional[OutstationDetails] = None
    next_payment_date: Optional[date] = None
    fuel_level: Optional[str] = None
    vehicle_remarks: Optional[str] = None
    cancellation_reason: Optional[str] = None
    security_deposit_refunded: bool = False
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    version: int = 0

    @property
    def total_amount(self) -> Decimal:
        return (
            self.booking_amount
            + self.security_deposit_amount
            + self.damage_charges
            + self.late_fee
            + self.extension_fee
        )

    @property
    def rental_charges(self) -> Decimal:
        """Amount owed for the rental itself, excluding the deposit."""
        return (
            self.booking_amount
            + self.damage_charges
            + self.late_fee
            + self.extension_fee
        )

    @property
    def payment_status(self) -> PaymentStatus:
        return derive_payment_status(self.paid_amount, self.total_amount)

    @property
    def pending_amount(self) -> Decimal:
        return max(self.total_amount - self.paid_amount, ZERO)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def ensure_mutable(self) -> None:
        if self.is_terminal:
            raise BookingClosedError(
                f"Booking {self.booking_code} is {self.status.value} "
                "and can no longer be changed."
            )

    def apply_payment(self, amount: Decimal) -> None:
        self.ensure_mutable()
        if amount <= 0:
            raise InvalidAmountError("Payment amount must be greater than zero.")
        if self.paid_amount + amount > self.total_amount:
            raise OverpaymentError(
                "Paid amount cannot exceed total amount "
                f"(outstanding {format_currency(self.pending_amount)})."
            )
        self.paid_amount += amount

    def transition_to(self, target: BookingStatus) -> None:
        self.ensure_mutable()
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStateTransitionError(
                f"Cannot change booking {self.booking_code} from "
                f"{self.status.value} to {target.value}."
            )
        self.status = target

    def extend_to(
        self, new_end_date: date, new_dropoff_time: time, additional_amount: Decimal
    ) -> None:
        self.ensure_mutable()
        self.booking_amount += additional_amount
        self.end_date = new_end_date
        self.dropoff_time = new_dropoff_time

    def assess_charges(
        self, damage_charges: Decimal, late_fee: Decimal, extension_fee: Decimal
    ) -> None:
        self.ensure_mutable()
        for label, value in (
            ("Damage charges", damage_charges),
            ("Late fee", late_fee),
            ("Extension fee", extension_fee),
        ):
            if value < 0:
                raise InvalidAmountError(f"{label} cannot be negative.")
        self.damage_charges = damage_charges
        self.late_fee = late_fee
        self.extension_fee = extension_fee

    def check_invariants(self) -> None:
        """Raise if the aggregate is not internally consistent."""
        for label, value in (
            ("Booking amount", self.booking_amount),
            ("Security deposit", self.security_deposit_amount),
            ("Damage charges", self.damage_charges),
            ("Late fee", self.late_fee),
            ("Extension fee", self.extension_fee),
            ("Paid amount", self.paid_amount),
        ):
            if value < 0:
                raise InvalidAmountError(f"{label} cannot be negative.")
        if self.paid_amount > self.total_amount:
            raise OverpaymentError("Paid amount cannot exceed total amount.")
        validate_rental_window(self.start_date, self.end_date)
        if (
            self.rental_purpose == RentalPurpose.OUTSTATION
            and self.outstation_details is None
        ):
            raise BookingValidationError(
                "Outstation bookings require destination and odometer details."
            )


@dataclass(frozen=True, slots=True)
class Payment:
    id: Optional[int]
    booking_id: int
    amount: Decimal
    mode: PaymentMode
    created_at: datetime
    created_by: Optional[str]
    note: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Extension:
    id: Optional[int]
    booking_id: int
    previous_end_date: date
    previous_dropoff_time: time
    new_end_date: date
    new_dropoff_time: time
    additional_amount: Decimal
    payment_amount: Decimal
    payment_method: Optional[PaymentMode]
    next_payment_date: Optional[date]
    reason: Optional[str]
    created_by: Optional[str]
    created_at: datetime


@dataclass(frozen=True, slots=True)
class DamageRecord:
    id: Optional[int]
    booking_id: int
    vehicle_registration: str
    description: Optional[str]
    charges: Decimal
    created_at: datetime
    created_by: Optional[str]


@dataclass(frozen=True, slots=True)
class DepositRefund:
    id: Optional[int]
    booking_id: int
    deposit_amount: Decimal
    deductions: Decimal
    refund_amount: Decimal
    refund_mode: PaymentMode
    deduction_reason: Optional[str]
    created_at: datetime
    created_by: Optional[str]
