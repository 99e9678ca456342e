"""Booking completion: final charges, settlement and the status change."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from rental_booking.domain.models import (
    Booking,
    BookingStatus,
    DamageRecord,
    Payment,
    PaymentMode,
    RentalPurpose,
)
from rental_booking.logging_config import get_logger
from rental_booking.repositories.storage import BookingStorage
from rental_booking.services.errors import (
    InvalidAmountError,
    InvalidInputError,
    InvalidStateTransitionError,
    OverpaymentError,
)
from rental_booking.services.locks import BookingLocks
from rental_booking.services.notifications import NotificationEvent, Notifier, dispatch
from rental_booking.services.payment_ledger import PaymentLedger, coerce_payment_mode
from rental_booking.utils.dates import now_ist
from rental_booking.utils.money import ZERO, MoneyLike, format_currency, to_money


@dataclass(frozen=True)
class CompletionResult:
    booking: Booking
    damage_record: Optional[DamageRecord]
    settlement_payment: Optional[Payment]
    fee_payment: Optional[Payment]

    @property
    def final_total_amount(self) -> Decimal:
        return self.booking.rental_charges


class CompletionProcessor:
    """Closes an in-use booking."""

    def __init__(
        self,
        storage: BookingStorage,
        ledger: PaymentLedger,
        notifier: Notifier,
        *,
        locks: Optional[BookingLocks] = None,
        clock: Callable[[], datetime] = now_ist,
    ) -> None:
        self._storage = storage
        self._ledger = ledger
        self._notifier = notifier
        self._locks = locks or BookingLocks()
        self._clock = clock
        self._logger = get_logger(self.__class__.__name__)

    def _ensure_completable(self, booking: Booking) -> None:
        booking.ensure_mutable()
        if booking.status != BookingStatus.IN_USE:
            raise InvalidStateTransitionError(
                f"Booking {booking.booking_code} is {booking.status.value}; "
                "only bookings in use can be completed."
            )

    def _end_odometer(
        self, booking: Booking, odometer_reading: Optional[int | str]
    ) -> Optional[int]:
        if odometer_reading is None or odometer_reading == "":
            return None
        if booking.rental_purpose != RentalPurpose.OUTSTATION:
            self._logger.debug(
                "Ignoring odometer reading for local booking %s",
                booking.booking_code,
            )
            return None
        try:
            reading = int(odometer_reading)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(
                f"Invalid odometer reading: {odometer_reading!r}."
            ) from exc
        start = booking.outstation_details.start_odometer
        if reading < start:
            raise InvalidInputError(
                f"End odometer reading cannot be less than the start reading ({start})."
            )
        return reading

    def complete(
        self,
        booking: Booking,
        damage_charges: MoneyLike,
        damage_description: Optional[str],
        late_fee: MoneyLike,
        extension_fee: MoneyLike,
        final_payment_mode: PaymentMode | str,
        odometer_reading: Optional[int | str] = None,
        fuel_level: Optional[str] = None,
        actor: Optional[str] = None,
        *,
        fee_payment: MoneyLike = ZERO,
        vehicle_remarks: Optional[str] = None,
    ) -> CompletionResult:
        """Complete ``booking`` and return the updated copy.

        Whatever was outstanding on the booking amount and deposit is
        settled under ``final_payment_mode``. The newly assessed charges stay
        pending unless ``fee_payment`` covers them.
        """
        self._ensure_completable(booking)
        damage = to_money(damage_charges)
        late = to_money(late_fee)
        extension = to_money(extension_fee)
        for label, value in (
            ("Damage charges", damage),
            ("Late fee", late),
            ("Extension fee", extension),
        ):
            if value < 0:
                raise InvalidAmountError(f"{label} cannot be negative.")
        mode = coerce_payment_mode(final_payment_mode)
        new_charges = damage + late + extension
        charges_payment = to_money(fee_payment)
        if charges_payment < 0:
            raise InvalidAmountError("Payment amount cannot be negative.")
        if charges_payment > new_charges:
            raise OverpaymentError(
                "Paid amount cannot exceed total amount "
                f"(new charges {format_currency(new_charges)})."
            )
        end_odometer = self._end_odometer(booking, odometer_reading)
        description = (
            damage_description.strip()
            if damage_description and damage_description.strip()
            else None
        )

        working = copy.deepcopy(booking)
        with self._locks.hold(booking.id):
            with self._storage.unit_of_work():
                now = self._clock()
                damage_record = None
                if damage > 0 or description:
                    damage_record = self._storage.append_damage_record(
                        DamageRecord(
                            id=None,
                            booking_id=working.id,
                            vehicle_registration=working.vehicle_registration,
                            description=description,
                            charges=damage,
                            created_at=now,
                            created_by=actor,
                        )
                    )

                remaining = (
                    working.booking_amount
                    + working.security_deposit_amount
                    - working.paid_amount
                )
                settlement = None
                if remaining > 0:
                    settlement = self._ledger.apply(
                        working, remaining, mode, actor, note="Final settlement"
                    )

                working.assess_charges(damage, late, extension)
                paid_charges = None
                if charges_payment > 0:
                    paid_charges = self._ledger.apply(
                        working,
                        charges_payment,
                        mode,
                        actor,
                        note="Completion charges",
                    )

                if working.rental_purpose == RentalPurpose.OUTSTATION:
                    if end_odometer is not None:
                        working.outstation_details.end_odometer = end_odometer
                    if fuel_level:
                        working.fuel_level = fuel_level
                if vehicle_remarks:
                    working.vehicle_remarks = vehicle_remarks
                working.transition_to(BookingStatus.COMPLETED)
                working.next_payment_date = None
                working.completed_at = now
                working.completed_by = actor
                working.updated_at = now
                working.updated_by = actor
                working.check_invariants()
                self._storage.save_booking(working)

        self._logger.info(
            "Completed booking %s: charges=%s settled=%s status=%s",
            working.booking_code,
            new_charges,
            remaining if remaining > 0 else ZERO,
            working.payment_status.value,
        )
        dispatch(
            self._notifier,
            NotificationEvent.BOOKING_COMPLETED,
            working.id,
            {
                "booking_code": working.booking_code,
                "damage_charges": format_currency(working.damage_charges),
                "late_fee": format_currency(working.late_fee),
                "extension_fee": format_currency(working.extension_fee),
                "final_total": format_currency(working.rental_charges),
                "paid_amount": format_currency(working.paid_amount),
                "pending_amount": format_currency(working.pending_amount),
                "payment_status": working.payment_status.value,
            },
        )
        return CompletionResult(
            booking=working,
            damage_record=damage_record,
            settlement_payment=settlement,
            fee_payment=paid_charges,
        )
