"""
Tests for booking completion.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from rental_booking.domain.models import BookingStatus, PaymentMode, PaymentStatus
from rental_booking.services.errors import (
    BookingClosedError,
    InvalidInputError,
    InvalidStateTransitionError,
    OverpaymentError,
    StorageFailureError,
)
from rental_booking.services.notifications import NotificationEvent
from rental_booking.utils.dates import IST

OUTSTATION = {"destination": "Lonavala", "estimated_kilometers": 180, "start_odometer": 42000}


def _complete(orchestrator, booking_id, **overrides):
    values = dict(
        damage_charges="0",
        damage_description=None,
        late_fee="0",
        extension_fee="0",
        final_payment_mode="cash",
        actor="staff-3",
    )
    values.update(overrides)
    return orchestrator.complete_booking(booking_id, **values)


class TestScenarioD:
    def test_new_charges_leave_a_pending_balance(self, orchestrator, in_use_booking):
        booking = in_use_booking()

        result = _complete(
            orchestrator,
            booking.id,
            damage_charges="300",
            damage_description="Scratch on rear bumper",
            late_fee="100",
        )

        stored = orchestrator.get_booking(booking.id)
        assert stored.status == BookingStatus.COMPLETED
        assert result.final_total_amount == stored.booking_amount + Decimal("400.00")
        assert stored.total_amount == Decimal("3400.00")
        assert stored.paid_amount == Decimal("3000.00")
        assert stored.payment_status == PaymentStatus.PARTIAL
        assert stored.completed_by == "staff-3"
        assert stored.completed_at is not None
        assert result.settlement_payment is None

        (damage,) = orchestrator.list_damage_records(booking.id)
        assert damage.charges == Decimal("300.00")
        assert damage.description == "Scratch on rear bumper"
        assert damage.vehicle_registration == "MH12AB1234"
        assert orchestrator.vehicle_damage_history("mh12ab1234") == [damage]

    def test_fee_payment_settles_new_charges(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        result = _complete(
            orchestrator,
            booking.id,
            damage_charges="300",
            late_fee="100",
            final_payment_mode="upi",
            fee_payment="400",
        )
        assert result.booking.payment_status == PaymentStatus.FULL
        assert result.fee_payment.amount == Decimal("400.00")
        assert result.fee_payment.mode == PaymentMode.UPI
        assert orchestrator.paid_to_date(booking.id) == Decimal("3400.00")

    def test_fee_payment_cannot_exceed_new_charges(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        with pytest.raises(OverpaymentError):
            _complete(orchestrator, booking.id, late_fee="100", fee_payment="150")
        assert orchestrator.get_booking(booking.id).status == BookingStatus.IN_USE


class TestSettlement:
    def test_outstanding_amount_is_settled(self, orchestrator, in_use_booking):
        booking = in_use_booking(paid_amount="1000")

        result = _complete(orchestrator, booking.id, final_payment_mode="card")

        assert result.settlement_payment.amount == Decimal("2000.00")
        assert result.settlement_payment.mode == PaymentMode.CARD
        assert result.settlement_payment.note == "Final settlement"
        stored = orchestrator.get_booking(booking.id)
        assert stored.paid_amount == Decimal("3000.00")
        assert stored.payment_status == PaymentStatus.FULL
        assert orchestrator.paid_to_date(booking.id) == stored.paid_amount

    def test_no_damage_record_without_damage(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        result = _complete(orchestrator, booking.id)
        assert result.damage_record is None
        assert orchestrator.list_damage_records(booking.id) == []

    def test_description_alone_creates_damage_record(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        result = _complete(orchestrator, booking.id, damage_description="Dent noted, waived")
        assert result.damage_record.charges == Decimal("0.00")


class TestScenarioE:
    @pytest.mark.parametrize("steps", [0, 1])
    def test_booking_not_in_use_cannot_complete(self, orchestrator, make_booking, steps):
        booking = make_booking(paid_amount="1000")
        if steps:
            orchestrator.confirm_booking(booking.id)
        before = orchestrator.get_booking(booking.id)

        with pytest.raises(InvalidStateTransitionError, match="only bookings in use"):
            _complete(orchestrator, booking.id, damage_charges="300", damage_description="x")

        after = orchestrator.get_booking(booking.id)
        assert after == before
        assert orchestrator.list_damage_records(booking.id) == []
        assert len(orchestrator.list_payments(booking.id)) == 1

    def test_completed_booking_cannot_complete_again(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        _complete(orchestrator, booking.id, late_fee="100")
        with pytest.raises(BookingClosedError):
            _complete(orchestrator, booking.id, late_fee="100")
        assert orchestrator.get_booking(booking.id).late_fee == Decimal("100.00")

    def test_status_change_cannot_bypass_completion(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        with pytest.raises(InvalidStateTransitionError, match="completion process"):
            orchestrator.change_status(booking.id, BookingStatus.COMPLETED)


class TestOutstation:
    def test_odometer_and_fuel_recorded(self, orchestrator, in_use_booking):
        booking = in_use_booking(rental_purpose="outstation", outstation_details=OUTSTATION)
        _complete(orchestrator, booking.id, odometer_reading="42350", fuel_level="half")
        stored = orchestrator.get_booking(booking.id)
        assert stored.outstation_details.end_odometer == 42350
        assert stored.outstation_details.distance_travelled == 350
        assert stored.fuel_level == "half"

    def test_odometer_cannot_go_backwards(self, orchestrator, in_use_booking):
        booking = in_use_booking(rental_purpose="outstation", outstation_details=OUTSTATION)
        with pytest.raises(InvalidInputError, match="less than the start reading"):
            _complete(orchestrator, booking.id, odometer_reading=41000)

    def test_local_booking_ignores_odometer(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        _complete(
            orchestrator,
            booking.id,
            odometer_reading="99999",
            fuel_level="full",
            vehicle_remarks="Returned clean",
        )
        stored = orchestrator.get_booking(booking.id)
        assert stored.outstation_details is None
        assert stored.fuel_level is None
        assert stored.vehicle_remarks == "Returned clean"


class TestFeesFromPolicy:
    def test_fees_computed_when_not_given(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        result = orchestrator.complete_booking(
            booking.id,
            returned_at=datetime(2024, 5, 13, 14, 0, tzinfo=IST),
        )
        assert result.booking.late_fee == Decimal("1000.00")
        assert result.booking.extension_fee == Decimal("1000.00")

    def test_explicit_fee_overrides_policy(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        result = orchestrator.complete_booking(
            booking.id,
            late_fee="250",
            returned_at="2024-05-12T15:00:00",
        )
        assert result.booking.late_fee == Decimal("250.00")
        assert result.booking.extension_fee == Decimal("0.00")

    def test_calculate_return_fees_is_read_only(self, orchestrator, in_use_booking):
        booking = in_use_booking()
        fees = orchestrator.calculate_return_fees(booking.id, "2024-05-12T13:30:00")
        assert fees.late_fee == Decimal("1000.00")
        assert orchestrator.get_booking(booking.id).late_fee == Decimal("0.00")


class TestFailures:
    def test_notification_failure_does_not_undo_completion(
        self, broken_orchestrator, in_use_booking
    ):
        booking = in_use_booking()

        result = _complete(broken_orchestrator, booking.id, damage_charges="300")

        assert result.booking.status == BookingStatus.COMPLETED
        assert broken_orchestrator.get_booking(booking.id).status == BookingStatus.COMPLETED

    def test_storage_failure_rolls_back_everything(
        self, orchestrator, failing_orchestrator, notifier, in_use_booking
    ):
        booking = in_use_booking(paid_amount="1000")

        with pytest.raises(StorageFailureError):
            _complete(
                failing_orchestrator,
                booking.id,
                damage_charges="300",
                damage_description="Cracked mirror",
            )

        stored = orchestrator.get_booking(booking.id)
        assert stored.status == BookingStatus.IN_USE
        assert stored.paid_amount == Decimal("1000.00")
        assert stored.damage_charges == Decimal("0.00")
        assert orchestrator.list_damage_records(booking.id) == []
        assert orchestrator.paid_to_date(booking.id) == Decimal("1000.00")
        assert notifier.of_type(NotificationEvent.BOOKING_COMPLETED) == []

    def test_completion_notification_payload(self, orchestrator, in_use_booking, notifier):
        booking = in_use_booking()
        _complete(orchestrator, booking.id, damage_charges="300", late_fee="100")
        (payload,) = notifier.of_type(NotificationEvent.BOOKING_COMPLETED)
        assert payload["final_total"] == "₹2,400.00"
        assert payload["pending_amount"] == "₹400.00"
        assert payload["payment_status"] == "partial"
