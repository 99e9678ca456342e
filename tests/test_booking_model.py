"""
Tests for the booking aggregate: derived totals, payment status and the
status state machine.
"""

from datetime import date, time
from decimal import Decimal

import pytest

from rental_booking.domain.models import (
    ALLOWED_TRANSITIONS,
    Booking,
    BookingStatus,
    OutstationDetails,
    PaymentStatus,
    RentalPurpose,
    derive_payment_status,
    validate_rental_window,
)
from rental_booking.services.errors import (
    BookingClosedError,
    BookingValidationError,
    InvalidAmountError,
    InvalidStateTransitionError,
    OverpaymentError,
)


def _booking(**overrides) -> Booking:
    values = dict(
        id=1,
        booking_code="BK0001",
        customer_id="CUST-1",
        vehicle_registration="MH12AB1234",
        start_date=date(2024, 5, 10),
        end_date=date(2024, 5, 12),
        pickup_time=time(10, 0),
        dropoff_time=time(10, 0),
        booking_amount=Decimal("2000.00"),
        security_deposit_amount=Decimal("1000.00"),
    )
    values.update(overrides)
    return Booking(**values)


class TestDerivedAmounts:
    def test_total_is_sum_of_all_components(self):
        booking = _booking(
            damage_charges=Decimal("300.00"),
            late_fee=Decimal("100.00"),
            extension_fee=Decimal("50.00"),
        )
        assert booking.total_amount == Decimal("3450.00")
        assert booking.rental_charges == Decimal("2450.00")

    def test_scenario_a_new_booking_is_pending(self):
        booking = _booking()
        assert booking.total_amount == Decimal("3000.00")
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.pending_amount == Decimal("3000.00")

    def test_total_follows_component_changes(self):
        booking = _booking(paid_amount=Decimal("3000.00"))
        assert booking.payment_status == PaymentStatus.FULL
        booking.assess_charges(Decimal("300.00"), Decimal("100.00"), Decimal("0.00"))
        assert booking.total_amount == Decimal("3400.00")
        assert booking.payment_status == PaymentStatus.PARTIAL


class TestPaymentStatusRule:
    @pytest.mark.parametrize(
        "paid,total,expected",
        [
            ("0", "3000", PaymentStatus.PENDING),
            ("0.01", "3000", PaymentStatus.PARTIAL),
            ("2999.99", "3000", PaymentStatus.PARTIAL),
            ("3000", "3000", PaymentStatus.FULL),
            ("0", "0", PaymentStatus.PENDING),
        ],
    )
    def test_derivation(self, paid, total, expected):
        assert derive_payment_status(Decimal(paid), Decimal(total)) == expected


class TestApplyPayment:
    def test_payment_updates_paid_amount(self):
        booking = _booking()
        booking.apply_payment(Decimal("1500.00"))
        assert booking.paid_amount == Decimal("1500.00")
        assert booking.payment_status == PaymentStatus.PARTIAL

    def test_zero_payment_rejected(self):
        with pytest.raises(InvalidAmountError, match="greater than zero"):
            _booking().apply_payment(Decimal("0"))

    def test_overpayment_rejected_with_outstanding_in_message(self):
        booking = _booking(paid_amount=Decimal("2500.00"))
        with pytest.raises(
            OverpaymentError, match="Paid amount cannot exceed total amount"
        ) as info:
            booking.apply_payment(Decimal("600.00"))
        assert "₹500.00" in str(info.value)
        assert booking.paid_amount == Decimal("2500.00")


class TestTransitions:
    def test_happy_path(self):
        booking = _booking()
        for status in (BookingStatus.CONFIRMED, BookingStatus.IN_USE, BookingStatus.COMPLETED):
            booking.transition_to(status)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.is_terminal

    @pytest.mark.parametrize(
        "start", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_USE]
    )
    def test_cancel_from_any_open_status(self, start):
        booking = _booking(status=start)
        booking.transition_to(BookingStatus.CANCELLED)
        assert booking.status == BookingStatus.CANCELLED

    def test_cannot_skip_to_completed(self):
        booking = _booking(status=BookingStatus.CONFIRMED)
        with pytest.raises(InvalidStateTransitionError, match="confirmed to completed"):
            booking.transition_to(BookingStatus.COMPLETED)

    def test_terminal_states_have_no_exits(self):
        assert ALLOWED_TRANSITIONS[BookingStatus.COMPLETED] == frozenset()
        assert ALLOWED_TRANSITIONS[BookingStatus.CANCELLED] == frozenset()

    @pytest.mark.parametrize("terminal", [BookingStatus.COMPLETED, BookingStatus.CANCELLED])
    def test_terminal_booking_rejects_mutation(self, terminal):
        booking = _booking(status=terminal)
        with pytest.raises(BookingClosedError):
            booking.transition_to(BookingStatus.CANCELLED)
        with pytest.raises(BookingClosedError):
            booking.apply_payment(Decimal("10.00"))
        with pytest.raises(BookingClosedError):
            booking.extend_to(date(2024, 5, 13), time(10, 0), Decimal("100.00"))
        assert booking.end_date == date(2024, 5, 12)
        assert booking.booking_amount == Decimal("2000.00")


class TestRentalWindow:
    def test_end_must_follow_start(self):
        with pytest.raises(BookingValidationError, match="End date must be after"):
            validate_rental_window(date(2024, 5, 10), date(2024, 5, 10))

    def test_thirty_days_is_the_limit(self):
        validate_rental_window(date(2024, 5, 1), date(2024, 5, 31))
        with pytest.raises(BookingValidationError, match="30 days"):
            validate_rental_window(date(2024, 5, 1), date(2024, 6, 1))


class TestInvariants:
    def test_outstation_requires_details(self):
        booking = _booking(rental_purpose=RentalPurpose.OUTSTATION)
        with pytest.raises(BookingValidationError, match="Outstation"):
            booking.check_invariants()

    def test_outstation_distance(self):
        details = OutstationDetails("Pune", 300, start_odometer=12000, end_odometer=12340)
        assert details.distance_travelled == 340
        assert OutstationDetails("Pune", 300, 12000).distance_travelled is None

    def test_overpaid_booking_fails_check(self):
        booking = _booking(paid_amount=Decimal("3000.01"))
        with pytest.raises(OverpaymentError):
            booking.check_invariants()

    def test_negative_charge_rejected(self):
        with pytest.raises(InvalidAmountError, match="Late fee"):
            _booking().assess_charges(Decimal("0"), Decimal("-1"), Decimal("0"))
