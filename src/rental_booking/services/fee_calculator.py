"""Late and extension fee calculation for vehicle returns."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from rental_booking.config import (
    DEFAULT_EXTENSION_FEE_AMOUNT,
    DEFAULT_LATE_FEE_AMOUNT,
    DEFAULT_LATE_FEE_GRACE_HOURS,
)
from rental_booking.domain.models import Booking
from rental_booking.services.errors import InvalidInputError
from rental_booking.utils.dates import IST, combine_ist, parse_timestamp
from rental_booking.utils.money import ZERO, to_money


@dataclass(frozen=True)
class LateFeeBracket:
    """Charge ``amount`` once a return is more than ``hours_late`` hours late."""

    hours_late: int
    amount: Decimal


def _default_brackets() -> tuple[LateFeeBracket, ...]:
    return (
        LateFeeBracket(
            hours_late=DEFAULT_LATE_FEE_GRACE_HOURS,
            amount=to_money(DEFAULT_LATE_FEE_AMOUNT),
        ),
    )


@dataclass(frozen=True)
class FeePolicy:
    late_fee_brackets: tuple[LateFeeBracket, ...] = field(
        default_factory=_default_brackets
    )
    extension_fee_amount: Decimal = field(
        default_factory=lambda: to_money(DEFAULT_EXTENSION_FEE_AMOUNT)
    )

    def __post_init__(self) -> None:
        brackets = tuple(sorted(self.late_fee_brackets, key=lambda b: b.hours_late))
        for bracket in brackets:
            if bracket.hours_late < 0:
                raise InvalidInputError("Late fee bracket hours cannot be negative.")
            if bracket.amount < 0:
                raise InvalidInputError("Late fee amount cannot be negative.")
        if self.extension_fee_amount < 0:
            raise InvalidInputError("Extension fee amount cannot be negative.")
        object.__setattr__(self, "late_fee_brackets", brackets)

    @property
    def grace_period_hours(self) -> int:
        if not self.late_fee_brackets:
            return 0
        return self.late_fee_brackets[0].hours_late

    def late_fee_for(self, hours_late: int) -> Decimal:
        fee = ZERO
        for bracket in self.late_fee_brackets:
            if hours_late > bracket.hours_late:
                fee = bracket.amount
        return fee


@dataclass(frozen=True)
class FeeBreakdown:
    late_fee: Decimal
    extension_fee: Decimal
    hours_late: int = 0

    @property
    def total_fees(self) -> Decimal:
        return self.late_fee + self.extension_fee


NO_FEES = FeeBreakdown(late_fee=ZERO, extension_fee=ZERO)


def calculate_return_fees(
    actual_return_time: Optional[datetime | str],
    expected_return_time: Optional[datetime | str],
    policy: FeePolicy,
) -> FeeBreakdown:
    """Return the fees owed for a return at ``actual_return_time``.

    Lateness is counted in whole hours past the expected time and priced by
    the highest bracket it exceeds. The extension fee applies when the
    vehicle comes back after the end of the expected return day (IST).
    """
    if expected_return_time is None:
        raise InvalidInputError("Expected return time is required to calculate fees.")
    if actual_return_time is None:
        raise InvalidInputError("Actual return time is required to calculate fees.")
    actual = parse_timestamp(actual_return_time)
    expected = parse_timestamp(expected_return_time)
    if actual <= expected:
        return NO_FEES

    hours_late = int((actual - expected).total_seconds() // 3600)
    late_fee = policy.late_fee_for(hours_late)
    extension_fee = ZERO
    if actual.astimezone(IST).date() > expected.astimezone(IST).date():
        extension_fee = policy.extension_fee_amount
    return FeeBreakdown(
        late_fee=late_fee, extension_fee=extension_fee, hours_late=hours_late
    )


class FeeCalculator:
    """Applies a fee policy to bookings; never mutates them."""

    def __init__(self, policy: Optional[FeePolicy] = None) -> None:
        self._policy = policy or FeePolicy()

    @property
    def policy(self) -> FeePolicy:
        return self._policy

    def calculate(
        self,
        actual_return_time: Optional[datetime | str],
        expected_return_time: Optional[datetime | str],
    ) -> FeeBreakdown:
        return calculate_return_fees(
            actual_return_time, expected_return_time, self._policy
        )

    def for_booking(self, booking: Booking, returned_at: datetime | str) -> FeeBreakdown:
        return self.calculate(returned_at, expected_return_time(booking))


def expected_return_time(booking: Booking) -> datetime:
    if booking.end_date is None or booking.dropoff_time is None:
        raise InvalidInputError(
            f"Booking {booking.booking_code} has no expected return time."
        )
    return combine_ist(booking.end_date, booking.dropoff_time)
