"""Payment ledger: append-only payments and the cached paid amount."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from rental_booking.domain.models import Booking, Payment, PaymentMode
from rental_booking.logging_config import get_logger
from rental_booking.repositories.storage import BookingStorage
from rental_booking.services.errors import InvalidAmountError, InvalidInputError
from rental_booking.services.locks import BookingLocks
from rental_booking.utils.dates import now_ist
from rental_booking.utils.money import MoneyLike, to_money

RECONCILIATION_NOTE = "Ledger entry restored from the booking paid amount"

APPENDED_MISSING_PAYMENT = "appended_missing_payment"
RESYNCED_PAID_AMOUNT = "resynced_paid_amount"
NEEDS_MANUAL_REVIEW = "needs_manual_review"


def coerce_payment_mode(mode: PaymentMode | str) -> PaymentMode:
    if isinstance(mode, PaymentMode):
        return mode
    try:
        return PaymentMode(mode)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in PaymentMode)
        raise InvalidInputError(
            f"Unsupported payment mode {mode!r}. Use one of: {allowed}."
        ) from exc


@dataclass(frozen=True)
class LedgerDiscrepancy:
    booking_id: int
    booking_code: str
    cached_paid: Decimal
    ledger_paid: Decimal
    action: str

    @property
    def repaired(self) -> bool:
        return self.action != NEEDS_MANUAL_REVIEW


class PaymentLedger:
    """Service for payment operations."""

    def __init__(
        self,
        storage: BookingStorage,
        *,
        locks: Optional[BookingLocks] = None,
        clock: Callable[[], datetime] = now_ist,
    ) -> None:
        self._storage = storage
        self._locks = locks or BookingLocks()
        self._clock = clock
        self._logger = get_logger(self.__class__.__name__)

    def list_payments(self, booking_id: int) -> list[Payment]:
        return self._storage.list_payments(booking_id)

    def paid_to_date(self, booking_id: int) -> Decimal:
        return self._storage.paid_total(booking_id)

    def record_payment(
        self,
        booking_id: int,
        amount: MoneyLike,
        mode: PaymentMode | str,
        actor: Optional[str],
        note: Optional[str] = None,
    ) -> Payment:
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmountError("Payment amount must be greater than zero.")
        payment_mode = coerce_payment_mode(mode)
        with self._locks.hold(booking_id):
            with self._storage.unit_of_work():
                booking = self._storage.load_booking(booking_id)
                payment = self.apply(booking, amount, payment_mode, actor, note)
                self._storage.save_booking(booking)
        self._logger.info(
            "Recorded payment of %s for booking %s (%s)",
            amount,
            booking.booking_code,
            booking.payment_status.value,
        )
        return payment

    def apply(
        self,
        booking: Booking,
        amount: Decimal,
        mode: PaymentMode,
        actor: Optional[str],
        note: Optional[str] = None,
    ) -> Payment:
        """Append a payment to ``booking`` inside the caller's unit of work.

        The caller saves the booking afterwards.
        """
        booking.apply_payment(amount)
        now = self._clock()
        booking.updated_at = now
        booking.updated_by = actor
        return self._storage.append_payment(
            Payment(
                id=None,
                booking_id=booking.id,
                amount=amount,
                mode=mode,
                created_at=now,
                created_by=actor,
                note=note,
            )
        )

    def reconcile(
        self, booking: Booking, actor: Optional[str]
    ) -> Optional[LedgerDiscrepancy]:
        """Bring the ledger and the cached paid amount back in line.

        Runs inside the caller's unit of work; the caller saves the booking
        when the returned discrepancy was repaired. A repair that would take
        the paid amount past the booking total writes nothing and is reported
        for manual review instead.
        """
        ledger_paid = self._storage.paid_total(booking.id)
        cached_paid = booking.paid_amount
        if ledger_paid == cached_paid:
            return None
        if max(ledger_paid, cached_paid) > booking.total_amount:
            self._logger.warning(
                "Booking %s needs manual review: cached=%s ledger=%s total=%s",
                booking.booking_code,
                cached_paid,
                ledger_paid,
                booking.total_amount,
            )
            return LedgerDiscrepancy(
                booking_id=booking.id,
                booking_code=booking.booking_code,
                cached_paid=cached_paid,
                ledger_paid=ledger_paid,
                action=NEEDS_MANUAL_REVIEW,
            )
        now = self._clock()
        if ledger_paid < cached_paid:
            self._storage.append_payment(
                Payment(
                    id=None,
                    booking_id=booking.id,
                    amount=cached_paid - ledger_paid,
                    mode=booking.payment_mode,
                    created_at=booking.created_at or now,
                    created_by=booking.created_by or actor,
                    note=RECONCILIATION_NOTE,
                )
            )
            action = APPENDED_MISSING_PAYMENT
        else:
            booking.paid_amount = ledger_paid
            action = RESYNCED_PAID_AMOUNT
        booking.updated_at = now
        booking.updated_by = actor
        self._logger.info(
            "Reconciled booking %s: cached=%s ledger=%s action=%s",
            booking.booking_code,
            cached_paid,
            ledger_paid,
            action,
        )
        return LedgerDiscrepancy(
            booking_id=booking.id,
            booking_code=booking.booking_code,
            cached_paid=cached_paid,
            ledger_paid=ledger_paid,
            action=action,
        )
