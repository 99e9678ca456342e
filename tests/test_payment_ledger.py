"""
Tests for payment recording and the paid-amount projection.
"""

from decimal import Decimal

import pytest

from rental_booking.domain.models import PaymentMode, PaymentStatus
from rental_booking.services.errors import (
    BookingClosedError,
    InvalidAmountError,
    InvalidInputError,
    NotFoundError,
    OverpaymentError,
)
from rental_booking.services.notifications import NotificationEvent


def _ledger_total(orchestrator, booking_id):
    return sum((p.amount for p in orchestrator.list_payments(booking_id)), Decimal("0.00"))


class TestScenarios:
    def test_scenario_a_partial_payment(self, orchestrator, make_booking):
        booking = make_booking()
        assert booking.total_amount == Decimal("3000.00")
        assert booking.payment_status == PaymentStatus.PENDING

        orchestrator.record_payment(booking.id, "1500", "upi", actor="staff-1")

        stored = orchestrator.get_booking(booking.id)
        assert stored.paid_amount == Decimal("1500.00")
        assert stored.payment_status == PaymentStatus.PARTIAL
        assert _ledger_total(orchestrator, booking.id) == stored.paid_amount

    def test_scenario_b_second_payment_settles(self, orchestrator, make_booking):
        booking = make_booking()
        orchestrator.record_payment(booking.id, "1500", "upi")
        orchestrator.record_payment(booking.id, "1500", "cash")

        stored = orchestrator.get_booking(booking.id)
        assert stored.paid_amount == stored.total_amount == Decimal("3000.00")
        assert stored.payment_status == PaymentStatus.FULL
        assert [p.amount for p in orchestrator.list_payments(booking.id)] == [
            Decimal("1500.00"),
            Decimal("1500.00"),
        ]


class TestBoundaries:
    def test_paying_exact_outstanding_makes_it_full(self, orchestrator, make_booking):
        booking = make_booking(paid_amount="1234.56")
        outstanding = booking.total_amount - booking.paid_amount

        payment = orchestrator.record_payment(booking.id, outstanding, PaymentMode.CARD)

        assert payment.amount == Decimal("1765.44")
        assert payment.mode == PaymentMode.CARD
        assert orchestrator.get_booking(booking.id).payment_status == PaymentStatus.FULL

    @pytest.mark.parametrize("amount", ["0", "-10", 0])
    def test_non_positive_amount_rejected(self, orchestrator, make_booking, amount):
        booking = make_booking()
        with pytest.raises(InvalidAmountError, match="greater than zero"):
            orchestrator.record_payment(booking.id, amount, "cash")
        assert orchestrator.list_payments(booking.id) == []
        assert orchestrator.get_booking(booking.id).paid_amount == Decimal("0.00")

    def test_overpayment_rejected_without_writes(self, orchestrator, make_booking):
        booking = make_booking(paid_amount="2000")
        with pytest.raises(OverpaymentError, match="Paid amount cannot exceed total amount"):
            orchestrator.record_payment(booking.id, "1000.01", "cash")

        stored = orchestrator.get_booking(booking.id)
        assert stored.paid_amount == Decimal("2000.00")
        assert _ledger_total(orchestrator, booking.id) == Decimal("2000.00")
        assert stored.version == booking.version

    def test_unknown_mode_rejected(self, orchestrator, make_booking):
        booking = make_booking()
        with pytest.raises(InvalidInputError, match="Unsupported payment mode"):
            orchestrator.record_payment(booking.id, "100", "cheque")

    def test_unknown_booking(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.record_payment(999, "100", "cash")


class TestLedgerProjection:
    def test_initial_payment_is_a_ledger_entry(self, orchestrator, make_booking):
        booking = make_booking(paid_amount="500", payment_mode="upi")
        payments = orchestrator.list_payments(booking.id)
        assert len(payments) == 1
        assert payments[0].amount == Decimal("500.00")
        assert payments[0].mode == PaymentMode.UPI
        assert payments[0].note == "Initial payment"
        assert payments[0].created_by == "staff-1"
        assert orchestrator.paid_to_date(booking.id) == booking.paid_amount

    def test_paid_to_date_is_idempotent(self, orchestrator, make_booking):
        booking = make_booking(paid_amount="700")
        orchestrator.record_payment(booking.id, "300", "cash")
        first = orchestrator.paid_to_date(booking.id)
        second = orchestrator.paid_to_date(booking.id)
        assert first == second == Decimal("1000.00")

    def test_stored_projection_columns(self, connection, orchestrator, make_booking):
        booking = make_booking()
        orchestrator.record_payment(booking.id, "1000", "cash")
        row = connection.execute(
            "SELECT total_amount, paid_amount, payment_status FROM bookings WHERE id = ?",
            (booking.id,),
        ).fetchone()
        assert row["total_amount"] == "3000.00"
        assert row["paid_amount"] == "1000.00"
        assert row["payment_status"] == "partial"

    def test_total_received_by_period(self, orchestrator, make_booking):
        first = make_booking(paid_amount="400")
        second = make_booking(vehicle_registration="KA01XY9999")
        orchestrator.record_payment(second.id, "600", "upi")
        assert orchestrator.total_received("2024-05-10", "2024-05-10") == Decimal("1000.00")
        assert orchestrator.total_received("2024-05-11", "2024-05-12") == Decimal("0.00")
        assert first.id != second.id


class TestClosedBookings:
    def test_payment_on_cancelled_booking_rejected(self, orchestrator, make_booking):
        booking = make_booking()
        orchestrator.cancel_booking(booking.id, reason="Customer changed plans")
        with pytest.raises(BookingClosedError):
            orchestrator.record_payment(booking.id, "100", "cash")
        assert orchestrator.list_payments(booking.id) == []


class TestNotifications:
    def test_payment_emits_booking_updated(self, orchestrator, make_booking, notifier):
        booking = make_booking()
        orchestrator.record_payment(booking.id, "1500", "upi")
        updates = notifier.of_type(NotificationEvent.BOOKING_UPDATED)
        assert updates[-1]["payment_amount"] == "₹1,500.00"
        assert updates[-1]["payment_status"] == "partial"
