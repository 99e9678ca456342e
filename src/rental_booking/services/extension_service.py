"""Mid-rental booking extensions."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Optional

from rental_booking.config import MAX_EXTENSION_DAYS, MAX_RENTAL_DAYS
from rental_booking.domain.models import Booking, Extension, Payment, PaymentMode
from rental_booking.logging_config import get_logger
from rental_booking.repositories.storage import BookingStorage
from rental_booking.services.errors import ExtensionValidationError, ValidationError
from rental_booking.services.locks import BookingLocks
from rental_booking.services.notifications import NotificationEvent, Notifier, dispatch
from rental_booking.services.payment_ledger import PaymentLedger, coerce_payment_mode
from rental_booking.utils.dates import (
    format_date,
    format_time,
    now_ist,
    parse_date,
    parse_time,
)
from rental_booking.utils.money import ZERO, MoneyLike, format_currency, to_money


@dataclass(frozen=True)
class ExtensionRequest:
    """Validated, parsed extension arguments."""

    new_end_date: date
    new_dropoff_time: time
    additional_amount: Decimal
    payment_amount: Decimal
    payment_method: Optional[PaymentMode]
    next_payment_date: Optional[date]
    reason: Optional[str]


@dataclass(frozen=True)
class ExtensionResult:
    booking: Booking
    extension: Extension
    payment: Optional[Payment]


class ExtensionProcessor:
    """Moves a booking's end date and amount forward as one unit of work."""

    def __init__(
        self,
        storage: BookingStorage,
        ledger: PaymentLedger,
        notifier: Notifier,
        *,
        locks: Optional[BookingLocks] = None,
        clock: Callable[[], datetime] = now_ist,
        max_extension_days: int = MAX_EXTENSION_DAYS,
        max_rental_days: int = MAX_RENTAL_DAYS,
    ) -> None:
        self._storage = storage
        self._ledger = ledger
        self._notifier = notifier
        self._locks = locks or BookingLocks()
        self._clock = clock
        self._max_extension_days = max_extension_days
        self._max_rental_days = max_rental_days
        self._logger = get_logger(self.__class__.__name__)

    def validate(
        self,
        booking: Booking,
        new_end_date: str | date,
        new_dropoff_time: str | time,
        additional_amount: MoneyLike,
        current_payment: MoneyLike = ZERO,
        payment_method: Optional[PaymentMode | str] = None,
        reason: Optional[str] = None,
        next_payment_date: Optional[str | date] = None,
    ) -> ExtensionRequest:
        """Check every precondition without touching storage."""
        if booking.is_terminal:
            raise ExtensionValidationError(
                f"Booking {booking.booking_code} is {booking.status.value} "
                "and cannot be extended."
            )
        try:
            end_date = parse_date(new_end_date)
            dropoff_time = parse_time(new_dropoff_time)
            additional = to_money(additional_amount)
            payment = to_money(current_payment)
            follow_up = (
                parse_date(next_payment_date) if next_payment_date else None
            )
            method = (
                coerce_payment_mode(payment_method)
                if payment_method
                else booking.payment_mode
            )
        except ExtensionValidationError:
            raise
        except ValidationError as exc:
            raise ExtensionValidationError(str(exc)) from exc

        if additional < 0:
            raise ExtensionValidationError("Additional amount cannot be negative.")
        if payment < 0:
            raise ExtensionValidationError("Payment amount cannot be negative.")

        today = self._clock().date()
        if end_date < today:
            raise ExtensionValidationError("New end date cannot be in the past.")
        if end_date < booking.end_date:
            raise ExtensionValidationError(
                "New end date cannot be before the current end date "
                f"({format_date(booking.end_date)})."
            )
        if (end_date, dropoff_time) <= (booking.end_date, booking.dropoff_time):
            raise ExtensionValidationError(
                "New return time must be after the current return time."
            )
        window_end = max(today, booking.end_date) + timedelta(
            days=self._max_extension_days
        )
        if end_date > window_end:
            raise ExtensionValidationError(
                f"Extensions can reach at most {self._max_extension_days} days "
                f"ahead (until {format_date(window_end)})."
            )
        if end_date > booking.start_date + timedelta(days=self._max_rental_days):
            raise ExtensionValidationError(
                f"Maximum booking duration is {self._max_rental_days} days "
                "from the start date."
            )

        outstanding = booking.pending_amount + additional
        if payment > outstanding:
            raise ExtensionValidationError(
                "Payment amount cannot exceed the outstanding amount "
                f"({format_currency(outstanding)})."
            )
        if payment < outstanding:
            if follow_up is None:
                raise ExtensionValidationError(
                    "Next payment date is required when a balance remains."
                )
            if follow_up < today:
                raise ExtensionValidationError(
                    "Next payment date cannot be in the past."
                )
        else:
            follow_up = None

        return ExtensionRequest(
            new_end_date=end_date,
            new_dropoff_time=dropoff_time,
            additional_amount=additional,
            payment_amount=payment,
            payment_method=method if payment > 0 else None,
            next_payment_date=follow_up,
            reason=reason.strip() if reason and reason.strip() else None,
        )

    def extend(
        self,
        booking: Booking,
        new_end_date: str | date,
        new_dropoff_time: str | time,
        additional_amount: MoneyLike,
        current_payment: MoneyLike = ZERO,
        payment_method: Optional[PaymentMode | str] = None,
        reason: Optional[str] = None,
        next_payment_date: Optional[str | date] = None,
        actor: Optional[str] = None,
    ) -> ExtensionResult:
        """Extend ``booking`` and return the updated copy.

        The caller's object is left as it was; if any write fails nothing is
        committed and the stored booking is unchanged.
        """
        request = self.validate(
            booking,
            new_end_date,
            new_dropoff_time,
            additional_amount,
            current_payment,
            payment_method,
            reason,
            next_payment_date,
        )
        working = copy.deepcopy(booking)
        with self._locks.hold(booking.id):
            with self._storage.unit_of_work():
                now = self._clock()
                extension = self._storage.append_extension(
                    Extension(
                        id=None,
                        booking_id=booking.id,
                        previous_end_date=booking.end_date,
                        previous_dropoff_time=booking.dropoff_time,
                        new_end_date=request.new_end_date,
                        new_dropoff_time=request.new_dropoff_time,
                        additional_amount=request.additional_amount,
                        payment_amount=request.payment_amount,
                        payment_method=request.payment_method,
                        next_payment_date=request.next_payment_date,
                        reason=request.reason,
                        created_by=actor,
                        created_at=now,
                    )
                )
                working.extend_to(
                    request.new_end_date,
                    request.new_dropoff_time,
                    request.additional_amount,
                )
                payment = None
                if request.payment_amount > 0:
                    payment = self._ledger.apply(
                        working,
                        request.payment_amount,
                        request.payment_method,
                        actor,
                        note="Extension payment",
                    )
                working.next_payment_date = request.next_payment_date
                working.updated_at = now
                working.updated_by = actor
                working.check_invariants()
                self._storage.save_booking(working)

        self._logger.info(
            "Extended booking %s from %s to %s (+%s, paid %s)",
            working.booking_code,
            booking.end_date,
            working.end_date,
            request.additional_amount,
            request.payment_amount,
        )
        dispatch(
            self._notifier,
            NotificationEvent.BOOKING_EXTENDED,
            working.id,
            {
                "booking_code": working.booking_code,
                "previous_end": (
                    f"{format_date(booking.end_date)} {format_time(booking.dropoff_time)}"
                ),
                "new_end": (
                    f"{format_date(working.end_date)} {format_time(working.dropoff_time)}"
                ),
                "additional_amount": format_currency(request.additional_amount),
                "payment_amount": format_currency(request.payment_amount),
                "pending_amount": format_currency(working.pending_amount),
                "next_payment_date": format_date(working.next_payment_date),
            },
        )
        return ExtensionResult(booking=working, extension=extension, payment=payment)
